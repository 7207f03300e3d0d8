"""DOCX direct editor.

Primary path: rewrite ``word/document.xml`` inside the package with lxml,
copying every other part unchanged. Replacement text that reads as a list
becomes real Word list paragraphs backed by ``word/numbering.xml``; other
multi-line text becomes plain paragraphs; single-line edits substitute
inside the existing runs so formatting survives.

Fallback path: python-docx paragraph-level replacement, which flattens
run formatting in edited paragraphs (partial preservation).
"""

import asyncio
import copy
import re
import zipfile
from dataclasses import dataclass
from pathlib import Path

from lxml import etree

from app.core.appliers.base import ApplierRegistry, BaseApplier
from app.core.artifact_storage import build_artifact, derive_output_path, staged_output
from app.core.export_errors import DirectEditFailed, NoValidChanges
from app.core.logging import get_logger
from app.core.schemas_export import (
    ChangeInstruction,
    ExportArtifact,
    PreservationLevel,
    Strategy,
)

logger = get_logger(__name__)

W_NS = "http://schemas.openxmlformats.org/wordprocessingml/2006/main"
REL_NS = "http://schemas.openxmlformats.org/package/2006/relationships"
CT_NS = "http://schemas.openxmlformats.org/package/2006/content-types"
XML_NS = "http://www.w3.org/XML/1998/namespace"
W = f"{{{W_NS}}}"

NUMBERING_PART = "word/numbering.xml"
NUMBERING_REL_TYPE = (
    "http://schemas.openxmlformats.org/officeDocument/2006/relationships/numbering"
)
NUMBERING_CONTENT_TYPE = (
    "application/vnd.openxmlformats-officedocument.wordprocessingml.numbering+xml"
)
DOCUMENT_PART = "word/document.xml"
DOCUMENT_RELS = "word/_rels/document.xml.rels"
CONTENT_TYPES = "[Content_Types].xml"

BULLET_RE = re.compile(r"^\s*[•\-*]\s+")
NUMBERED_RE = re.compile(r"^\s*\d+[.)]\s+")
MARKDOWN_HEADING_RE = re.compile(r"^\s*#{1,6}\s+")
MATCH_PREFIX_CHARS = 100


# =============================================================================
# Text helpers
# =============================================================================


@dataclass
class ListLine:
    """One line of replacement text classified for paragraph building."""

    kind: str  # heading | bullet | number | plain
    text: str


def normalize(text: str) -> str:
    text = re.sub(r"[^\w\s]", " ", text.lower())
    return re.sub(r"\s+", " ", text).strip()


def is_list_text(text: str) -> bool:
    return any(BULLET_RE.match(line) or NUMBERED_RE.match(line) for line in text.split("\n"))


def parse_list_text(text: str) -> list[ListLine]:
    """Split replacement text into heading lines and list items."""
    lines: list[ListLine] = []
    for raw in text.split("\n"):
        line = raw.strip()
        if not line:
            continue
        if BULLET_RE.match(line):
            lines.append(ListLine("bullet", BULLET_RE.sub("", line, count=1)))
        elif NUMBERED_RE.match(line):
            lines.append(ListLine("number", NUMBERED_RE.sub("", line, count=1)))
        elif MARKDOWN_HEADING_RE.match(line) or line.endswith(":"):
            lines.append(ListLine("heading", MARKDOWN_HEADING_RE.sub("", line)))
        else:
            lines.append(ListLine("plain", line))
    return lines


def _strip_inline_markdown(text: str) -> str:
    return re.sub(r"\*\*(.+?)\*\*|__(.+?)__", lambda m: m.group(1) or m.group(2), text)


def line_matches(paragraph_text: str, line: str) -> bool:
    """Whether a paragraph is the one a find-text line refers to."""
    para = normalize(paragraph_text)
    target = normalize(line)[:MATCH_PREFIX_CHARS]
    if not para or not target:
        return False
    if target in para:
        return True
    words = [w for w in target.split(" ") if len(w) > 3]
    if len(words) < 3:
        return False
    para_words = set(para.split(" "))
    return sum(1 for w in words if w in para_words) * 2 > len(words)


# =============================================================================
# Package editing
# =============================================================================


def _w(tag: str) -> str:
    return f"{W}{tag}"


def paragraph_text(p) -> str:
    return "".join(t.text or "" for t in p.iter(_w("t")))


def _set_text(t, text: str) -> None:
    t.text = text
    if text != text.strip() or "  " in text:
        t.set(f"{{{XML_NS}}}space", "preserve")


def replace_in_runs(p, find: str, replace: str) -> int:
    """Replace every occurrence of ``find`` across the run text of one paragraph.

    Matches may span several runs; the replacement takes the formatting of
    the run where the match starts.
    """
    nodes = list(p.iter(_w("t")))
    if not nodes:
        return 0
    texts = [t.text or "" for t in nodes]
    full = "".join(texts)
    if find not in full:
        return 0

    # Offsets refer to the original run texts
    lengths = [len(text) for text in texts]
    starts = []
    offset = 0
    for length in lengths:
        starts.append(offset)
        offset += length

    def locate(pos: int) -> tuple[int, int]:
        for idx in range(len(nodes)):
            if starts[idx] <= pos < starts[idx] + lengths[idx]:
                return idx, pos - starts[idx]
        return len(nodes) - 1, pos - starts[-1]

    positions = [m.start() for m in re.finditer(re.escape(find), full)]
    # Right to left so earlier offsets stay valid
    for pos in reversed(positions):
        start_idx, start_off = locate(pos)
        end_idx, end_off = locate(pos + len(find) - 1)
        end_off += 1
        if start_idx == end_idx:
            text = texts[start_idx]
            texts[start_idx] = text[:start_off] + replace + text[end_off:]
        else:
            texts[start_idx] = texts[start_idx][:start_off] + replace
            for idx in range(start_idx + 1, end_idx):
                texts[idx] = ""
            texts[end_idx] = texts[end_idx][end_off:]

    for node, text in zip(nodes, texts):
        if (node.text or "") != text:
            _set_text(node, text)
    return len(positions)


class NumberingPart:
    """Creates or extends ``word/numbering.xml`` with bullet and decimal lists."""

    def __init__(self, parts: dict[str, bytes]):
        self.parts = parts
        self._ids: dict[str, int] | None = None

    def num_id(self, kind: str) -> int:
        if self._ids is None:
            self._ids = self._ensure()
        return self._ids[kind]

    def _ensure(self) -> dict[str, int]:
        if NUMBERING_PART in self.parts:
            root = etree.fromstring(self.parts[NUMBERING_PART])
        else:
            root = etree.Element(_w("numbering"), nsmap={"w": W_NS})
            self._register_part()

        abstract_ids = [int(el.get(_w("abstractNumId"))) for el in root.findall(_w("abstractNum"))]
        num_ids = [int(el.get(_w("numId"))) for el in root.findall(_w("num"))]
        next_abstract = max(abstract_ids, default=-1) + 1
        next_num = max(num_ids, default=0) + 1

        ids: dict[str, int] = {}
        for offset, (kind, fmt, text) in enumerate(
            (("bullet", "bullet", "•"), ("number", "decimal", "%1."))
        ):
            abstract = self._abstract_num(next_abstract + offset, fmt, text)
            existing = root.findall(_w("abstractNum"))
            # abstractNum elements must precede every num element
            if existing:
                existing[-1].addnext(abstract)
            else:
                root.insert(0, abstract)
            num = etree.Element(_w("num"))
            cleanup = root.find(_w("numIdMacAtCleanup"))
            if cleanup is not None:
                cleanup.addprevious(num)
            else:
                root.append(num)
            num.set(_w("numId"), str(next_num + offset))
            ref = etree.SubElement(num, _w("abstractNumId"))
            ref.set(_w("val"), str(next_abstract + offset))
            ids[kind] = next_num + offset

        self.parts[NUMBERING_PART] = etree.tostring(
            root, xml_declaration=True, encoding="UTF-8", standalone=True
        )
        return ids

    @staticmethod
    def _abstract_num(abstract_id: int, fmt: str, text: str):
        abstract = etree.Element(_w("abstractNum"))
        abstract.set(_w("abstractNumId"), str(abstract_id))
        multi = etree.SubElement(abstract, _w("multiLevelType"))
        multi.set(_w("val"), "hybridMultilevel")
        lvl = etree.SubElement(abstract, _w("lvl"))
        lvl.set(_w("ilvl"), "0")
        for tag, val in (("start", "1"), ("numFmt", fmt), ("lvlText", text), ("lvlJc", "left")):
            el = etree.SubElement(lvl, _w(tag))
            el.set(_w("val"), val)
        ppr = etree.SubElement(lvl, _w("pPr"))
        ind = etree.SubElement(ppr, _w("ind"))
        ind.set(_w("left"), "720")
        ind.set(_w("hanging"), "360")
        return abstract

    def _register_part(self) -> None:
        rels = etree.fromstring(self.parts[DOCUMENT_RELS])
        existing = {el.get("Id") for el in rels}
        n = 1
        while f"rId{n}" in existing:
            n += 1
        rel = etree.SubElement(rels, f"{{{REL_NS}}}Relationship")
        rel.set("Id", f"rId{n}")
        rel.set("Type", NUMBERING_REL_TYPE)
        rel.set("Target", "numbering.xml")
        self.parts[DOCUMENT_RELS] = etree.tostring(
            rels, xml_declaration=True, encoding="UTF-8", standalone=True
        )

        types = etree.fromstring(self.parts[CONTENT_TYPES])
        if not any(el.get("PartName") == "/word/numbering.xml" for el in types):
            override = etree.SubElement(types, f"{{{CT_NS}}}Override")
            override.set("PartName", "/word/numbering.xml")
            override.set("ContentType", NUMBERING_CONTENT_TYPE)
            self.parts[CONTENT_TYPES] = etree.tostring(
                types, xml_declaration=True, encoding="UTF-8", standalone=True
            )


class DocumentEditor:
    """Applies instructions to a parsed ``word/document.xml``."""

    def __init__(self, parts: dict[str, bytes]):
        self.parts = parts
        self.root = etree.fromstring(parts[DOCUMENT_PART])
        self.body = self.root.find(_w("body"))
        if self.body is None:
            raise ValueError("document.xml has no body")
        self.numbering = NumberingPart(parts)

    def paragraphs(self) -> list:
        return list(self.body.iter(_w("p")))

    def apply(self, instruction: ChangeInstruction) -> bool:
        find = instruction.find_text or ""
        replace = instruction.replace_text
        if not find:
            return False
        if is_list_text(replace) or "\n" in replace or "\n" in find:
            return self._replace_block(find, replace)
        hits = sum(replace_in_runs(p, find, replace) for p in self.paragraphs())
        return hits > 0

    def _match_block(self, find: str) -> list:
        """First run of consecutive paragraphs covering the find text's lines."""
        find_lines = [line for line in find.split("\n") if line.strip()]
        if not find_lines:
            return []
        paragraphs = self.paragraphs()
        for i, p in enumerate(paragraphs):
            if not line_matches(paragraph_text(p), find_lines[0]):
                continue
            block = [p]
            remaining = find_lines[1:]
            j = i + 1
            while remaining and j < len(paragraphs):
                candidate = paragraphs[j]
                if candidate.getparent() is not p.getparent():
                    break
                text = paragraph_text(candidate)
                if not text.strip():
                    block.append(candidate)
                elif line_matches(text, remaining[0]):
                    block.append(candidate)
                    remaining.pop(0)
                else:
                    break
                j += 1
            # Drop trailing blank paragraphs picked up while scanning
            while len(block) > 1 and not paragraph_text(block[-1]).strip():
                block.pop()
            return block
        return []

    def _replace_block(self, find: str, replace: str) -> bool:
        block = self._match_block(find)
        if not block:
            return False

        template = block[0]
        if is_list_text(replace):
            new_paragraphs = [self._list_paragraph(template, line) for line in parse_list_text(replace)]
        else:
            new_paragraphs = [
                self._plain_paragraph(template, line) for line in replace.split("\n")
            ]

        for new_p in new_paragraphs:
            template.addprevious(new_p)
        for old in block:
            old.getparent().remove(old)
        return True

    def _run(self, template, text: str):
        run = etree.Element(_w("r"))
        first_run = template.find(_w("r"))
        if first_run is not None and first_run.find(_w("rPr")) is not None:
            run.append(copy.deepcopy(first_run.find(_w("rPr"))))
        t = etree.SubElement(run, _w("t"))
        _set_text(t, _strip_inline_markdown(text))
        t.set(f"{{{XML_NS}}}space", "preserve")
        return run

    def _plain_paragraph(self, template, text: str):
        p = etree.Element(_w("p"))
        ppr = template.find(_w("pPr"))
        if ppr is not None:
            p.append(copy.deepcopy(ppr))
        if text:
            p.append(self._run(template, text))
        return p

    def _list_paragraph(self, template, line: ListLine):
        p = etree.Element(_w("p"))
        ppr = etree.SubElement(p, _w("pPr"))
        style = etree.SubElement(ppr, _w("pStyle"))
        if line.kind in ("bullet", "number"):
            style.set(_w("val"), "ListParagraph")
            num_pr = etree.SubElement(ppr, _w("numPr"))
            ilvl = etree.SubElement(num_pr, _w("ilvl"))
            ilvl.set(_w("val"), "0")
            num_id = etree.SubElement(num_pr, _w("numId"))
            num_id.set(_w("val"), str(self.numbering.num_id(line.kind)))
        elif line.kind == "heading":
            style.set(_w("val"), "Heading3")
        else:
            ppr.remove(style)
        p.append(self._run(template, line.text))
        return p

    def serialize(self) -> None:
        self.parts[DOCUMENT_PART] = etree.tostring(
            self.root, xml_declaration=True, encoding="UTF-8", standalone=True
        )


# =============================================================================
# Applier
# =============================================================================


def _read_package(path: Path) -> tuple[list[zipfile.ZipInfo], dict[str, bytes]]:
    with zipfile.ZipFile(path) as zf:
        infos = zf.infolist()
        parts = {info.filename: zf.read(info.filename) for info in infos}
    return infos, parts


def _write_package(path: Path, infos: list[zipfile.ZipInfo], parts: dict[str, bytes]) -> None:
    written = set()
    with zipfile.ZipFile(path, "w", zipfile.ZIP_DEFLATED) as zf:
        # [Content_Types].xml must stay the first entry
        for info in infos:
            zf.writestr(info, parts[info.filename], compress_type=zipfile.ZIP_DEFLATED)
            written.add(info.filename)
        for name, data in parts.items():
            if name not in written:
                zf.writestr(name, data)


def edit_package(source_path: Path, output_path: Path, instructions: list[ChangeInstruction]) -> int:
    """Structured edit. Returns the number of instructions applied."""
    infos, parts = _read_package(source_path)
    editor = DocumentEditor(parts)
    applied = 0
    for instruction in instructions:
        if instruction.is_cell_change:
            continue
        if editor.apply(instruction):
            applied += 1
        else:
            logger.debug(f"DOCX: no paragraph matched {instruction.find_text[:60]!r}")
    if applied:
        editor.serialize()
        _write_package(output_path, infos, parts)
    return applied


def edit_paragraphs(source_path: Path, output_path: Path, instructions: list[ChangeInstruction]) -> int:
    """Fallback edit with python-docx; run formatting in edited paragraphs is lost."""
    from docx import Document

    doc = Document(str(source_path))
    paragraphs = list(doc.paragraphs)
    for table in doc.tables:
        for row in table.rows:
            for cell in row.cells:
                paragraphs.extend(cell.paragraphs)

    applied = 0
    for instruction in instructions:
        find = instruction.find_text
        if instruction.is_cell_change or not find:
            continue
        hit = False
        for para in paragraphs:
            if find in para.text:
                para.text = para.text.replace(find, instruction.replace_text)
                hit = True
        applied += int(hit)
    if applied:
        doc.save(str(output_path))
    return applied


class DocxApplier(BaseApplier):
    """Direct binary editor for DOCX."""

    strategies = frozenset({Strategy.DIRECT_BINARY})

    async def apply(self, source_path, descriptor, plan, extracted) -> ExportArtifact:
        return await asyncio.to_thread(self._apply_sync, Path(source_path), descriptor, plan)

    def _apply_sync(self, source_path: Path, descriptor, plan) -> ExportArtifact:
        output_path = derive_output_path(source_path, descriptor)
        try:
            with staged_output(output_path) as tmp_path:
                applied = edit_package(source_path, tmp_path, plan.instructions)
                if not applied:
                    raise NoValidChanges()
            logger.info(f"DOCX structured edit: {applied} changes -> {output_path.name}")
            return build_artifact(output_path, descriptor, PreservationLevel.FULL)
        except NoValidChanges:
            raise
        except Exception as e:
            logger.warning(f"DOCX structured edit failed, falling back to paragraph edit: {e}")

        try:
            with staged_output(output_path) as tmp_path:
                applied = edit_paragraphs(source_path, tmp_path, plan.instructions)
                if not applied:
                    raise NoValidChanges()
        except NoValidChanges:
            raise
        except Exception as e:
            raise DirectEditFailed(f"Could not edit the Word document: {e}") from e

        logger.info(f"DOCX fallback edit: {applied} changes -> {output_path.name}")
        return build_artifact(
            output_path,
            descriptor,
            PreservationLevel.PARTIAL,
            notes=["Some formatting in edited paragraphs was simplified."],
        )


ApplierRegistry.register(DocxApplier())
