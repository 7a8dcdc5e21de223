"""
Custom metafields the enrichment service fills in.

This list is the completeness checklist, the validator whitelist and
the source of Shopify value types for the catalog updater.
"""

from typing import Dict

NAMESPACE = "custom"

# key -> (label shown to the model, Shopify metafield type)
METAFIELD_DEFINITIONS: Dict[str, tuple] = {
    "memoria_ram": ("Memoria RAM", "single_line_text_field"),
    "almacenamiento": ("Almacenamiento", "single_line_text_field"),
    "procesador_marca": ("Marca del procesador", "single_line_text_field"),
    "procesador_tipo": ("Tipo de procesador", "single_line_text_field"),
    "pantalla": ("Pantalla", "single_line_text_field"),
    "color": ("Color", "single_line_text_field"),
    "conectividad": ("Conectividad", "single_line_text_field"),
    "peso": ("Peso (kg)", "number_decimal"),
    "dimensiones": ("Dimensiones", "single_line_text_field"),
    "bateria": ("Batería", "single_line_text_field"),
    "garantia": ("Garantía", "single_line_text_field"),
    "sistema_operativo": ("Sistema operativo", "single_line_text_field"),
    "resolucion": ("Resolución", "single_line_text_field"),
    "modelo": ("Modelo", "single_line_text_field"),
    "numero_parte": ("Número de parte", "single_line_text_field"),
}

METAFIELD_KEYS = list(METAFIELD_DEFINITIONS)

# Fully qualified keys accepted from the model
VALID_METAFIELD_KEYS = frozenset(f"{NAMESPACE}.{key}" for key in METAFIELD_KEYS)

DEFAULT_METAFIELD_TYPE = "single_line_text_field"


def metafield_type(key: str) -> str:
    """Shopify value type for a bare key."""
    definition = METAFIELD_DEFINITIONS.get(key)
    return definition[1] if definition else DEFAULT_METAFIELD_TYPE
