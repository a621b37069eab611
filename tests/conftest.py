# Shared pytest fixtures
from __future__ import annotations

import tempfile
from collections.abc import Iterator
from pathlib import Path

import pytest

from client_import.logging.init import reset_logging
from client_import.models.fields import IGNORE_COLUMN, ColumnMapping
from client_import.models.issues import ImportIssue, IssueSeverity
from client_import.models.payload import NormalizedClientPayload
from client_import.models.preview import BaseAction, LookupMatch, PreviewRow
from client_import.normalize.row import make_row_id

SAMPLE_HEADERS = ["Nome do Cliente", "Conta", "Perfil", "Custódia Atual", "Observação interna"]


@pytest.fixture()
def temp_workdir(monkeypatch) -> Iterator[Path]:
    with tempfile.TemporaryDirectory() as d:
        p = Path(d)
        (p / "config").mkdir()
        (p / "data").mkdir()
        (p / "logs").mkdir()
        monkeypatch.chdir(p)
        yield p


@pytest.fixture()
def sample_config_yaml() -> str:
    return """source_file: ./data/clientes.csv
batch_size: 200
timezone: America/Sao_Paulo
table: clientes
mapping_store: ./config/mapping_models.json
audit_log_directory: ./logs
reports_directory: ./reports
database:
  host: localhost
  port: 5432
  user: appuser
  password: secret
  database: appdb
"""


@pytest.fixture()
def write_config(temp_workdir: Path, sample_config_yaml: str) -> Path:
    cfg = temp_workdir / "config" / "import.yml"
    cfg.write_text(sample_config_yaml, encoding="utf-8")
    return cfg


@pytest.fixture()
def sample_mapping() -> ColumnMapping:
    return {
        "Nome do Cliente": "nome",
        "Conta": "codigoConta",
        "Perfil": "perfilInvestidor",
        "Custódia Atual": "custodiaAtual",
        "Observação interna": IGNORE_COLUMN,
    }


@pytest.fixture(autouse=True)
def _fresh_logging() -> Iterator[None]:
    # The handler binds sys.stdout at setup time; capsys needs a new one per test
    reset_logging()
    yield
    reset_logging()


def make_preview_row(
    row_number: int,
    *,
    account: str = "",
    nome: str | None = "Cliente",
    blocking: bool = False,
    existing: LookupMatch | None = None,
    group: str | None = None,
) -> PreviewRow:
    """Build a PreviewRow directly, bypassing normalization."""
    payload = NormalizedClientPayload(nome=nome, codigo_conta=account or None)
    issues: tuple[ImportIssue, ...] = ()
    if blocking:
        issues = (ImportIssue("name_missing", IssueSeverity.ERROR, "Nome do cliente não informado.", "nome"),)
    return PreviewRow(
        row_id=make_row_id(row_number),
        row_number=row_number,
        raw={},
        payload=payload,
        account_number=account,
        issues=issues,
        has_blocking_error=blocking,
        base_action=BaseAction.UPDATE if existing is not None else BaseAction.CREATE,
        existing_match=existing,
        conflict_group_id=group,
    )


@pytest.fixture()
def preview_row_factory():
    return make_preview_row
