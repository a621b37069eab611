#!/usr/bin/env python3
"""Sample client spreadsheet generator.

Writes a spreadsheet in the layout the importer expects (row 1 headers,
data from row 2) using Brazilian formats: "1.234,56" amounts, "Sim"/"Não"
flags, dd/mm/yyyy dates. Optional knobs inject the cases the preview has
to flag: duplicated accounts, missing names, invalid numbers.
"""
from __future__ import annotations

import argparse
import sys
from pathlib import Path

import numpy as np
import pandas as pd

FIRST_NAMES = ["Ana", "Bruno", "Carla", "Diego", "Elisa", "Fábio", "Gabriela", "Heitor", "Íris", "João"]
LAST_NAMES = ["Silva", "Souza", "Oliveira", "Santos", "Pereira", "Lima", "Costa", "Ribeiro", "Almeida", "Gomes"]
PROFILES = ["Regular", "Qualificado", "Profissional"]
STATUSES = ["Ativo", "Inativo", "Prospecto"]
ORIGINS = ["Indicação", "Evento", "Site", "Parceiro"]

HEADERS = [
    "Nome do Cliente",
    "Conta",
    "Perfil do Investidor",
    "E-mail",
    "Telefone",
    "Status",
    "Custódia Atual",
    "Custódia Onshore",
    "Custódia Offshore",
    "% CDI",
    "Fee Fixo",
    "Próxima Reunião",
    "Aniversário",
]


def format_brl(value: float) -> str:
    """1234.5 -> '1.234,50'"""
    text = f"{value:,.2f}"
    return text.replace(",", "_").replace(".", ",").replace("_", ".")


def generate_clients(
    rows: int,
    seed: int = 42,
    duplicate_ratio: float = 0.0,
    missing_name_ratio: float = 0.0,
    invalid_number_ratio: float = 0.0,
) -> pd.DataFrame:
    rng = np.random.default_rng(seed)

    accounts = rng.choice(np.arange(100_000, 999_999), size=rows, replace=False).astype(str)
    n_dupes = int(rows * duplicate_ratio)
    if n_dupes and rows > 1:
        src = rng.choice(rows, size=n_dupes)
        dst = rng.choice(rows, size=n_dupes)
        accounts[dst] = accounts[src]

    names = [f"{rng.choice(FIRST_NAMES)} {rng.choice(LAST_NAMES)}" for _ in range(rows)]
    for idx in rng.choice(rows, size=int(rows * missing_name_ratio), replace=False):
        names[idx] = ""

    onshore = np.round(rng.uniform(10_000, 5_000_000, rows), 2)
    offshore = np.round(rng.uniform(0, 1_000_000, rows), 2)
    custody = [format_brl(v) for v in onshore + offshore]
    for idx in rng.choice(rows, size=int(rows * invalid_number_ratio), replace=False):
        custody[idx] = "n/d"

    meetings = pd.Timestamp("2025-01-06 09:00") + pd.to_timedelta(rng.integers(0, 180, rows), unit="D")
    birthdays = pd.Timestamp("1950-01-01") + pd.to_timedelta(rng.integers(0, 365 * 50, rows), unit="D")

    data = {
        "Nome do Cliente": names,
        "Conta": accounts.tolist(),
        "Perfil do Investidor": rng.choice(PROFILES, rows).tolist(),
        "E-mail": [f"cliente{i}@exemplo.com.br" for i in range(1, rows + 1)],
        "Telefone": [f"(11) 9{rng.integers(1000, 9999)}-{rng.integers(1000, 9999)}" for _ in range(rows)],
        "Status": rng.choice(STATUSES, rows).tolist(),
        "Custódia Atual": custody,
        "Custódia Onshore": [format_brl(v) for v in onshore],
        "Custódia Offshore": [format_brl(v) for v in offshore],
        "% CDI": [f"{v:.3f}".replace(".", ",") for v in rng.uniform(0.8, 1.3, rows)],
        "Fee Fixo": rng.choice(["Sim", "Não"], rows).tolist(),
        "Próxima Reunião": meetings.strftime("%d/%m/%Y %H:%M").tolist(),
        "Aniversário": birthdays.strftime("%d/%m/%Y").tolist(),
    }
    return pd.DataFrame(data, columns=HEADERS)


def write_file(df: pd.DataFrame, output: Path, sheet: str = "Clientes") -> None:
    output.parent.mkdir(parents=True, exist_ok=True)
    if output.suffix.lower() == ".csv":
        df.to_csv(output, sep=";", index=False, encoding="utf-8-sig")
    else:
        with pd.ExcelWriter(output, engine="openpyxl") as writer:
            df.to_excel(writer, sheet_name=sheet, index=False)
    print(f"Created {output} rows={len(df)} cols={len(df.columns)}")


def main() -> int:
    parser = argparse.ArgumentParser(description="Generate a synthetic client spreadsheet (.xlsx or .csv)")
    parser.add_argument("output", type=Path, help="Output path (.xlsx or .csv)")
    parser.add_argument("--rows", type=int, default=500, help="Number of clients (default: 500)")
    parser.add_argument("--seed", type=int, default=42, help="Random seed (default: 42)")
    parser.add_argument("--sheet", default="Clientes", help="Sheet name for .xlsx (default: Clientes)")
    parser.add_argument("--duplicates", type=float, default=0.0, help="Share of rows reusing another row's account")
    parser.add_argument("--missing-names", type=float, default=0.0, help="Share of rows without a name")
    parser.add_argument("--invalid-numbers", type=float, default=0.0, help="Share of rows with an unparseable custody")
    args = parser.parse_args()

    if args.rows <= 0:
        print("Error: --rows must be positive", file=sys.stderr)
        return 1
    for name in ("duplicates", "missing_names", "invalid_numbers"):
        if not 0.0 <= getattr(args, name) <= 1.0:
            print(f"Error: --{name.replace('_', '-')} must be between 0 and 1", file=sys.stderr)
            return 1

    df = generate_clients(args.rows, args.seed, args.duplicates, args.missing_names, args.invalid_numbers)
    write_file(df, args.output, args.sheet)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
