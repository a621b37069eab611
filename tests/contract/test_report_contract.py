from __future__ import annotations

import csv
import io

from client_import.models.decision import EffectiveAction
from client_import.models.execution import ExecutionResult, RowResult, UpsertItem
from client_import.models.payload import ClientMetrics, NormalizedClientPayload
from client_import.models.preview import BaseAction
from client_import.services.reports import CSV_HEADER, build_csv_report

"""Wire shapes: upsert item and the ';' separated CSV report."""


def test_upsert_item_shape():
    payload = NormalizedClientPayload(nome="Ana", codigo_conta="1", metrics=ClientMetrics(total_brl=2.5))
    create = UpsertItem(BaseAction.CREATE, payload, "imp", 2).to_dict()
    update = UpsertItem(BaseAction.UPDATE, payload, "imp", 3, client_id="c-1").to_dict()

    assert create == {
        "action": "create",
        "data": {"nome": "Ana", "codigoConta": "1", "metrics": {"totalBRL": 2.5}},
        "source": {"importId": "imp", "rowNumber": 2},
    }
    assert update["clientId"] == "c-1"
    assert update["action"] == "update"


def test_csv_report_parses_back_with_csv_module():
    results = [
        ExecutionResult("import-row-2", 2, "1", EffectiveAction.CREATE, RowResult.ERROR, 'a;b "c"\nd'),
    ]
    rows = list(csv.reader(io.StringIO(build_csv_report(results)), delimiter=";"))
    assert rows[0] == list(CSV_HEADER)
    assert rows[1] == ["2", "1", "create", "error", 'a;b "c"\nd']
