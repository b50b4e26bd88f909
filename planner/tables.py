"""Static grid definitions for each plannable view."""

from typing import List, Union

from .models import TableConfiguration, TableKey


TABLE_CONFIGURATIONS = {
    TableKey.MAIN: TableConfiguration(
        key=TableKey.MAIN,
        display_name="Hauptplan",
        roles=(
            "Anästhesie Arzt 1", "Anästhesie Arzt 2", "AA Praktikant", "",
            "Anästhesie Pflege", "Anästhesie Pflege", "ATA", "ATA", "Praktikant", "",
            "", "", "",
            "OP Pflege", "OP Pflege", "OTAS", "OTAS", "Praktikant", "Praktikant",
            "", "", "", "",
        ),
        rooms=(
            "A1", "A2", "A3", "A4", "B1", "B2", "B3", "B4",
            "D1", "D2", "D3", "D4", "Kreißsaal", "Derma OP",
            "Medicum IV", "Medicum V", "Schleuse", "Externer Saal*",
            "Externer Saal *", "POBE",
        ),
    ),
    TableKey.EMERGENCY: TableConfiguration(
        key=TableKey.EMERGENCY,
        display_name="Notfallplan",
        roles=(
            "Bereitschaftsarzt", "Notfall-Pflege", "ATA Bereitschaft", "",
            "OP-Koordination", "Springer", "",
        ),
        rooms=("Notfall-OP", "Schockraum", "Hybrid-OP"),
    ),
    TableKey.WEEKEND: TableConfiguration(
        key=TableKey.WEEKEND,
        display_name="Wochenendplan",
        roles=(
            "Wochenenddienst Arzt", "Wochenenddienst Pflege", "Rufbereitschaft", "",
        ),
        rooms=("A1", "B1", "D1", "Kreißsaal"),
    ),
}


def get_configuration(key: Union[TableKey, str]) -> TableConfiguration:
    """Get the configuration for a table key (enum member or its value)."""
    return TABLE_CONFIGURATIONS[TableKey(key)]


def list_configurations() -> List[TableConfiguration]:
    """All configurations in key declaration order."""
    return [TABLE_CONFIGURATIONS[key] for key in TableKey]
