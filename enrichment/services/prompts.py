"""
Prompt templates for product enrichment.

The system instruction fixes the domain (technology retail in Costa
Rica), the language, the ban on monetary data and the confidence
guidance. The user prompt carries the product's current fields and the
external data gathered for it.
"""

import json
from typing import List, Optional

from enrichment.discovery.barcode_lookup import BarcodeData
from enrichment.discovery.providers import SearchResult
from enrichment.services.metafields import METAFIELD_DEFINITIONS, NAMESPACE
from enrichment.shopify.types import CatalogItem

SYSTEM_PROMPT = """Eres un experto en SEO y e-commerce especializado en productos de tecnologia para el mercado de Costa Rica. Tu trabajo es enriquecer fichas de productos de una tienda en linea.

REGLAS ESTRICTAS:
1. NUNCA incluyas informacion de precios, costos, descuentos ni valores monetarios.
2. Escribe todo en espanol de Costa Rica.
3. La descripcion debe ser HTML valido con parrafos, listas y negritas. Sin scripts, estilos ni atributos de eventos.
4. Solo incluye metafields que puedas confirmar con los datos proporcionados.
5. Si no tenes certeza sobre un dato especifico, dejalo como null.
6. Sobre confidence_score:
   - Si el titulo identifica claramente la marca y el modelo, asigna >= 0.7.
   - Si ademas hay datos de busqueda web que lo confirman, asigna >= 0.8.
   - Para productos de tecnologia de marca conocida, la confianza minima es 0.6.
   - Solo asigna < 0.5 si el producto es generico, sin marca ni modelo identificable.

FORMATO DE RESPUESTA:
Responde UNICAMENTE con un objeto JSON valido, sin markdown y sin comentarios."""


def _response_shape() -> str:
    shape = {
        "confidence_score": "0.0-1.0",
        "description_html": "<p>Descripcion SEO en HTML...</p>",
        "product_type": "Tipo de producto",
        "category_suggestion": "Electronics > Computers > Laptops",
        "tags": ["tag1", "tag2", "..."],
        "seo_title": "Titulo SEO (max 70 caracteres)",
        "seo_description": "Meta descripcion SEO (max 160 caracteres)",
        "metafields": {f"{NAMESPACE}.{key}": "valor o null" for key in METAFIELD_DEFINITIONS},
        "image_analysis": {
            "current_quality": "buena|regular|mala",
            "needs_more_images": "true|false",
            "suggested_alt_texts": ["alt text 1", "alt text 2"],
        },
    }
    return json.dumps(shape, ensure_ascii=False, indent=2)


def _search_section(search_results: List[SearchResult]) -> str:
    if not search_results:
        return "No se encontro informacion adicional"
    return "\n".join(f"- {r.title}: {r.snippet}" for r in search_results)


def _barcode_section(barcode_data: Optional[BarcodeData]) -> str:
    if not barcode_data:
        return "Sin datos de codigo de barras"
    lines = [
        f"- Nombre: {barcode_data.name or 'N/D'}",
        f"- Marca: {barcode_data.brand or 'N/D'}",
        f"- Categoria: {barcode_data.category or 'N/D'}",
    ]
    if barcode_data.description:
        lines.append(f"- Descripcion: {barcode_data.description}")
    for name, value in barcode_data.specs.items():
        lines.append(f"- {name}: {value}")
    return "\n".join(lines)


def build_user_prompt(
    item: CatalogItem,
    search_results: List[SearchResult],
    barcode_data: Optional[BarcodeData] = None,
) -> str:
    """Render the per-product prompt."""
    current_metafields = "\n".join(
        f"  {key}: {value}" for key, value in item.custom_metafields().items()
    )

    return f"""Necesito que enriquezcas la siguiente ficha de producto de una tienda de tecnologia en Costa Rica.

## DATOS ACTUALES DEL PRODUCTO:
- Titulo: {item.title}
- Descripcion actual: {item.description_html or "VACIA"}
- Tipo: {item.product_type or "SIN TIPO"}
- Vendor/Marca: {item.vendor or "SIN MARCA"}
- Tags actuales: {", ".join(item.tags) if item.tags else "NINGUNO"}
- SKU: {item.sku or "SIN SKU"}
- Imagenes actuales: {len(item.images)} imagenes
- Categoria Shopify: {item.category or "SIN CATEGORIA"}

## DATOS ENCONTRADOS POR BUSQUEDA WEB:
{_search_section(search_results)}

## DATOS DEL CODIGO DE BARRAS:
{_barcode_section(barcode_data)}

## METAFIELDS ACTUALES:
{current_metafields or "NINGUNO"}

## QUE NECESITO QUE GENERES:

Responde con este JSON exacto:
{_response_shape()}

NOTAS:
- Solo incluye metafields que puedas confirmar con datos reales
- Descripcion: 150-300 palabras, HTML con <p>, <ul>, <li>, <strong>
- 5-15 tags relevantes en espanol
- category_suggestion usa la taxonomia estandar de Shopify
- NUNCA incluyas precio, costo ni valores monetarios"""
