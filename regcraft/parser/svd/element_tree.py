"""Load SVD XML text into an element tree.

The builder only relies on the ElementTree element API (``find``,
``findall``, ``get``, ``text``), so trees produced by ``xml.etree`` work too.
"""

from pathlib import Path
from typing import Union

import lxml.etree as ET

from regcraft.errors import MalformedElement

DOCUMENT_PATH = "<document>"


def _make_parser() -> ET.XMLParser:
    # Note: remove comments as otherwise these are present as nodes in the returned XML tree
    return ET.XMLParser(remove_comments=True, remove_pis=True, resolve_entities=False)


def parse_tree(text: Union[str, bytes]) -> ET._Element:
    """Parse XML text and return the root element.

    Raises:
        MalformedElement: If the text is not well-formed XML.
    """
    if isinstance(text, str):
        text = text.encode("utf-8")
    try:
        return ET.fromstring(text, parser=_make_parser())
    except ET.XMLSyntaxError as e:
        raise MalformedElement(f"XML syntax error: {e.msg}", DOCUMENT_PATH, line=e.lineno)


def load_tree(file_path: Union[str, Path]) -> ET._Element:
    """Read an XML file and return the root element.

    Raises:
        FileNotFoundError: If the file does not exist.
        MalformedElement: If the file is not well-formed XML.
    """
    file_path = Path(file_path)
    if not file_path.is_file():
        raise FileNotFoundError(f"No such file: {file_path.absolute()}")

    try:
        with open(file_path, "rb") as f:
            return ET.parse(f, parser=_make_parser()).getroot()
    except ET.XMLSyntaxError as e:
        raise MalformedElement(
            f"XML syntax error: {e.msg}", DOCUMENT_PATH, file_path, e.lineno
        )
