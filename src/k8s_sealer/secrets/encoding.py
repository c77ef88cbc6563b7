"""Sealed secret serialization.

Sealed secrets are meant to be reviewed and committed to source control,
so both formats are pretty printed with a stable key order.
"""

import json
from typing import Any

import yaml

from k8s_sealer.exceptions import EncodingError, UnsupportedOutputFormatError
from k8s_sealer.models import OutputFormat


def parse_output_format(output_format: str | None) -> OutputFormat:
    """Convert an output format name to an OutputFormat.

    Names are case-insensitive and an empty name means JSON.

    Raises:
        UnsupportedOutputFormatError: If the format is not json or yaml.

    """
    if not output_format:
        return OutputFormat.JSON
    try:
        return OutputFormat(output_format.lower())
    except ValueError as err:
        raise UnsupportedOutputFormatError(f"unsupported output format: {output_format}") from err


def encode_sealed_secret(sealed_secret: dict[str, Any], output_format: str | None = None) -> bytes:
    """Serialize a SealedSecret manifest.

    Args:
        sealed_secret: The manifest to serialize.
        output_format: json (default) or yaml.

    Returns:
        The encoded manifest, terminated by a single newline.

    Raises:
        UnsupportedOutputFormatError: If the format is not supported.
        EncodingError: If the manifest cannot be serialized.

    """
    fmt = parse_output_format(output_format)

    try:
        if fmt is OutputFormat.YAML:
            text = yaml.safe_dump(sealed_secret, default_flow_style=False, sort_keys=False)
        else:
            text = json.dumps(sealed_secret, indent=2)
    except (TypeError, ValueError, yaml.YAMLError) as err:
        raise EncodingError(f"Cannot encode sealed secret: {err}") from err

    return (text.rstrip("\n") + "\n").encode()
