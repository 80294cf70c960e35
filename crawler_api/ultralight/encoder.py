"""Codificación de atributos a payload Ultralight 2.0.

Formato: ``nombre1|valor1|nombre2|valor2`` en una sola línea.

Limitación conocida: ni nombres ni valores se escapan. Un ``|`` dentro de un
nombre o de un valor rompe el framing; el llamador debe evitarlo. El encoder
lo registra como warning pero no altera los datos.

Un ``Decimal`` es siempre un número: suelto conserva su texto exacto
(``3.10``) y dentro de un compuesto se emite como número JSON (``3.1``).
"""

from __future__ import annotations

import dataclasses
import json
import logging
from datetime import date, datetime, time
from decimal import Decimal
from typing import Any, Mapping

from pydantic import BaseModel

logger = logging.getLogger(__name__)

SEPARATOR = "|"


def _to_jsonable(value: Any) -> Any:
    if isinstance(value, BaseModel):
        return value.model_dump(mode="json", by_alias=True)
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return dataclasses.asdict(value)
    if isinstance(value, (set, frozenset)):
        return sorted(value, key=repr)
    if isinstance(value, (datetime, date, time)):
        return value.isoformat()
    if isinstance(value, Decimal):
        # Número JSON, igual que un Decimal suelto; se pierde la escala (3.10 -> 3.1).
        return float(value)
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


def render_value(value: Any) -> str:
    """Forma textual determinista de un valor.

    Escalares: texto directo (``true``/``false`` para bool, vacío para None).
    Compuestos: JSON canónico (claves ordenadas, separadores compactos).
    """
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, str):
        return value
    if isinstance(value, (int, float, Decimal)):
        return str(value)
    if isinstance(value, (datetime, date, time)):
        return value.isoformat()
    return json.dumps(
        value,
        default=_to_jsonable,
        sort_keys=True,
        separators=(",", ":"),
        ensure_ascii=False,
    )


def encode(attributes: Mapping[str, Any]) -> str:
    """Convierte un AttributeSet en una línea Ultralight.

    Los pares se ordenan por nombre de atributo para que el resultado no
    dependa del orden de iteración del mapping.
    """
    pairs = []
    for name in sorted(attributes):
        rendered = render_value(attributes[name])
        if SEPARATOR in name or SEPARATOR in rendered:
            logger.warning("[UL] Attribute %r contains %r; payload framing will break", name, SEPARATOR)
        pairs.append(f"{name}{SEPARATOR}{rendered}")
    return SEPARATOR.join(pairs)
