"""Output schema generation for tool result models."""

from typing import Any, Dict, Optional, Sequence, Type

from pydantic import BaseModel
from pydantic.json_schema import models_json_schema

from .base import OperationOutput

REF_TEMPLATE = "#/$defs/{model}"


def build_output_schema(models: Sequence[Type[BaseModel]]) -> Optional[Dict[str, Any]]:
    """
    Build the ``{data, output}`` envelope schema for a tool's result models.

    Returns None when the tool declares no result model. With several models
    ``data`` becomes a ``oneOf`` over all of them; every definition lands in a
    single top-level ``$defs`` so references resolve from the envelope root.
    """
    if not models:
        return None

    all_models = list(dict.fromkeys(list(models) + [OperationOutput]))
    keys, top_level = models_json_schema(
        [(model, "serialization") for model in all_models],
        ref_template=REF_TEMPLATE,
    )
    defs = top_level.get("$defs", {})

    refs = [keys[(model, "serialization")] for model in models]
    data_schema: Dict[str, Any] = refs[0] if len(refs) == 1 else {"oneOf": refs}

    return {
        "type": "object",
        "properties": {
            "data": data_schema,
            "output": keys[(OperationOutput, "serialization")],
        },
        "required": ["data", "output"],
        "$defs": defs,
    }
