"""
MDM config reader - key/value lists written by the VPN client installer

The file is a property list style document:

    <dict>
      <key>organization</key>
      <string>acme</string>
      <key>auto_connect</key>
      <integer>1</integer>
    </dict>
"""
import logging
import xml.etree.ElementTree as ET
from pathlib import Path

from src.agent.exceptions import ConfigParseError

logger = logging.getLogger(__name__)


def parse_property_list(data):
    """
    Parse key/value sibling pairs from an XML document.
    Bytes are decoded by the parser (BOM or XML declaration decides).
    """
    try:
        root = ET.fromstring(data)
    except (ET.ParseError, UnicodeDecodeError) as e:
        raise ConfigParseError(f"Invalid XML: {e}")

    container = root if root.tag == "dict" else root.find(".//dict")
    if container is None:
        container = root

    values = {}
    children = list(container)
    for i, child in enumerate(children):
        if child.tag != "key":
            continue
        key = (child.text or "").strip()
        if not key:
            continue
        if i + 1 >= len(children) or children[i + 1].tag == "key":
            logger.debug(f"Key '{key}' has no value element")
            continue
        values[key] = (children[i + 1].text or "").strip()
    return values


def read_property_list(path):
    """Read and parse a property list file"""
    path = Path(path)
    try:
        data = path.read_bytes()
    except OSError as e:
        raise ConfigParseError(f"Cannot read {path}: {e}")
    return parse_property_list(data)
