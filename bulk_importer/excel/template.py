from __future__ import annotations

from pathlib import Path

import pandas as pd

from ..entities.profile import EntityProfile

"""Example workbook per entity.

Sheet "Modelo" holds the header row and the profile's example rows, ready to
be filled in and imported; sheet "Instrucoes" lists every column with its
description (plus any profile notes).
"""

__all__ = [
    "INSTRUCTIONS_SHEET",
    "MODEL_SHEET",
    "instruction_lines",
    "write_template",
]

INSTRUCTIONS_SHEET = "Instrucoes"
MODEL_SHEET = "Modelo"


def instruction_lines(profile: EntityProfile) -> list[str]:
    lines = ["Instruções para preenchimento:", ""]
    lines += [f"{i}. {c.name}: {c.description}" for i, c in enumerate(profile.columns, start=1)]
    if profile.notes:
        lines += ["", "Observações:"]
        lines += [f"- {note}" for note in profile.notes]
    return lines


def write_template(profile: EntityProfile, path: Path) -> Path:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    instructions = pd.DataFrame({"": instruction_lines(profile)})
    model = pd.DataFrame(list(profile.example_rows), columns=profile.column_names)
    with pd.ExcelWriter(path, engine="openpyxl") as writer:
        # model first: the decoder reads the first sheet
        model.to_excel(writer, sheet_name=MODEL_SHEET, index=False)
        instructions.to_excel(writer, sheet_name=INSTRUCTIONS_SHEET, index=False, header=False)
    return path
