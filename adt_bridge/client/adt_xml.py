"""
Reading and writing the ADT XML documents used by the bridge client.
"""

import re
from typing import Optional
from xml.etree import ElementTree
from xml.sax.saxutils import quoteattr

ADT_CORE_NS = "http://www.sap.com/adt/core"
PACKAGE_NS = "http://www.sap.com/adt/packages"

_LOCK_HANDLE = re.compile(r"<LOCK_HANDLE>(.*?)</LOCK_HANDLE>", re.S)


def adtcore(name: str) -> str:
    return f"{{{ADT_CORE_NS}}}{name}"


def local_name(tag: str) -> str:
    return tag.rsplit("}", 1)[-1]


def object_references(xml: str) -> list[dict]:
    """Entries of an ``adtcore:objectReferences`` search result."""
    if not xml or not xml.strip():
        return []
    root = ElementTree.fromstring(xml)
    return [
        {
            "name": ref.get(adtcore("name"), ""),
            "type": ref.get(adtcore("type"), ""),
            "uri": ref.get(adtcore("uri"), ""),
            "description": ref.get(adtcore("description"), ""),
            "package_name": ref.get(adtcore("packageName"), ""),
        }
        for ref in root.iter(adtcore("objectReference"))
    ]


def package_metadata(xml: str) -> dict:
    root = ElementTree.fromstring(xml)
    package = root if local_name(root.tag) == "package" else root.find(f"{{{PACKAGE_NS}}}package")
    attrs = package.attrib if package is not None else {}
    return {
        key: attrs.get(adtcore(attr), "")
        for key, attr in (
            ("name", "name"),
            ("description", "description"),
            ("created_by", "createdBy"),
            ("created_at", "createdAt"),
            ("changed_by", "changedBy"),
            ("changed_at", "changedAt"),
        )
    }


def element_to_dict(element: ElementTree.Element) -> dict:
    """Namespace-free view of an element: tag, attributes, text and children."""
    result = {
        "tag": local_name(element.tag),
        "attributes": {local_name(k): v for k, v in element.attrib.items()},
    }
    text = (element.text or "").strip()
    if text:
        result["text"] = text
    children = [element_to_dict(child) for child in element]
    if children:
        result["children"] = children
    return result


def object_info(xml: str) -> dict:
    return element_to_dict(ElementTree.fromstring(xml))


def lock_handle(xml: Optional[str]) -> str:
    match = _LOCK_HANDLE.search(xml or "")
    return match.group(1) if match else ""


def activation_request(uri: str, name: str) -> str:
    return (
        '<?xml version="1.0" encoding="UTF-8"?>\n'
        f'<adtcore:objectReferences xmlns:adtcore="{ADT_CORE_NS}">\n'
        f"  <adtcore:objectReference adtcore:uri={quoteattr(uri)} adtcore:name={quoteattr(name)}/>\n"
        "</adtcore:objectReferences>"
    )


def program_document(name: str, description: str, package: str, language: str) -> str:
    return (
        '<?xml version="1.0" encoding="UTF-8"?>\n'
        "<program:abapProgram\n"
        '    xmlns:program="http://www.sap.com/adt/programs/programs"\n'
        f'    xmlns:adtcore="{ADT_CORE_NS}"\n'
        f"    adtcore:description={quoteattr(description)}\n"
        f"    adtcore:language={quoteattr(language)}\n"
        f"    adtcore:name={quoteattr(name)}\n"
        '    adtcore:type="PROG/P"\n'
        '    program:programType="1">\n'
        f"  <adtcore:packageRef adtcore:name={quoteattr(package)}/>\n"
        "</program:abapProgram>"
    )


def class_document(
    name: str,
    description: str,
    package: str,
    language: str,
    final: bool,
    visibility: str,
) -> str:
    return (
        '<?xml version="1.0" encoding="UTF-8"?>\n'
        "<class:abapClass\n"
        '    xmlns:class="http://www.sap.com/adt/oo/classes"\n'
        f'    xmlns:adtcore="{ADT_CORE_NS}"\n'
        f"    adtcore:description={quoteattr(description)}\n"
        f"    adtcore:language={quoteattr(language)}\n"
        f"    adtcore:name={quoteattr(name)}\n"
        '    adtcore:type="CLAS/OC"\n'
        '    adtcore:abapLanguageVersion="cloudDevelopment"\n'
        f'    class:final="{"true" if final else "false"}"\n'
        f"    class:visibility={quoteattr(visibility)}>\n"
        f"  <adtcore:packageRef adtcore:name={quoteattr(package)}/>\n"
        "</class:abapClass>"
    )
