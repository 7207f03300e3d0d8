"""Plan document modifications with the oracle, then validate them locally.

The oracle proposes find/replace pairs (and cell edits for tabular
documents). Nothing it proposes is trusted: every find string must be a
literal substring of the extracted text and every cell must be in range,
or the instruction is dropped and recorded in ``validation_errors``.
"""

import json
import logging

from app.core.config import get_settings
from app.core.export_errors import NoValidChanges
from app.core.oracle import ModelTier, OracleError, call_oracle_json
from app.core.schemas_export import (
    ChangeInstruction,
    ColumnAddition,
    ExtractedDocument,
    ModificationPlan,
    RejectedInstruction,
    SessionMessage,
)

logger = logging.getLogger(__name__)


# =============================================================================
# Prompt
# =============================================================================

PLANNER_SYSTEM = """You edit documents by proposing exact find/replace operations.

You receive the document text, recent conversation and the user's instruction.
Return ONLY a JSON object:
{
  "changes": [{"find": "<exact text copied from the document>", "replace": "<new text>", "reason": "<short>"}],
  "cell_changes": [{"sheet": "<sheet name>", "row": 0, "column": 0, "value": "<new value>", "reason": "<short>"}],
  "added_columns": [{"header": "<column header>", "default_value": "<value for every row>"}],
  "explanation": "<one or two sentences for the user>"
}

Rules:
- "find" MUST be copied character-for-character from the document. Never paraphrase it.
- Keep each "find" as short as possible while still unique.
- Each change replaces every occurrence of its "find" text. Changes apply in order.
- To turn text into a list, put one item per line in "replace", prefixed with "- " or "1. ".
- cell_changes and added_columns are only for spreadsheets; rows and columns are zero-based and row 0 is the header.
- Use empty arrays when a section does not apply."""

PLANNER_USER = """Document ({format_id}{truncated_note}):
<<<DOCUMENT
{document}
DOCUMENT>>>
{sheets}
Recent conversation:
{context}

Instruction: {instruction}"""


def format_session_context(session_context: list[SessionMessage] | tuple[SessionMessage, ...]) -> str:
    if not session_context:
        return "(none)"
    return "\n".join(f"{m.sender}: {m.message[:1000]}" for m in session_context)


def build_planner_messages(
    extracted: ExtractedDocument,
    user_instruction: str,
    session_context: list[SessionMessage] | tuple[SessionMessage, ...] = (),
) -> list[dict[str, str]]:
    """Assemble the planner request, truncating the document and context."""
    settings = get_settings()
    limit = settings.MAX_PLAN_INPUT_CHARS
    document = extracted.plain_text[:limit]
    truncated_note = (
        f", truncated to the first {limit} of {len(extracted.plain_text)} characters"
        if len(extracted.plain_text) > limit
        else ""
    )
    window = settings.SESSION_CONTEXT_WINDOW
    recent = list(session_context)[-window:] if window > 0 else []

    sheets = ""
    if extracted.is_tabular and extracted.sheet_dimensions:
        dims = {name: {"rows": r, "columns": c} for name, (r, c) in extracted.sheet_dimensions.items()}
        sheets = f"Sheets: {json.dumps(dims)}\n"

    user = PLANNER_USER.format(
        format_id=extracted.format_id,
        truncated_note=truncated_note,
        document=document,
        sheets=sheets,
        context=format_session_context(recent),
        instruction=user_instruction.strip(),
    )
    return [
        {"role": "system", "content": PLANNER_SYSTEM},
        {"role": "user", "content": user},
    ]


# =============================================================================
# Validation
# =============================================================================


def _unescape(text: str) -> str:
    return text.replace("\\r\\n", "\n").replace("\\n", "\n").replace("\\t", "\t")


def _as_int(value) -> int | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str) and value.strip().lstrip("-").isdigit():
        return int(value.strip())
    return None


def _validate_text_change(
    raw: dict, plain_text: str
) -> tuple[ChangeInstruction | None, RejectedInstruction | None]:
    find = raw.get("find", raw.get("find_text"))
    replace = raw.get("replace", raw.get("replace_text", ""))
    reason = str(raw.get("reason", ""))
    find = "" if find is None else str(find)
    replace = "" if replace is None else str(replace)

    candidate = ChangeInstruction(find_text=find, replace_text=replace, reason=reason)
    if not find:
        return None, RejectedInstruction(instruction=candidate, error="empty find text")

    if find not in plain_text:
        unescaped = _unescape(find)
        if unescaped and unescaped in plain_text:
            find = unescaped
            replace = _unescape(replace)
        else:
            return None, RejectedInstruction(
                instruction=candidate, error="find text is not present in the document"
            )

    if find == replace:
        return None, RejectedInstruction(instruction=candidate, error="replacement is identical")

    return ChangeInstruction(find_text=find, replace_text=replace, reason=reason), None


def _validate_cell_change(
    raw: dict, extracted: ExtractedDocument
) -> tuple[ChangeInstruction | None, RejectedInstruction | None]:
    row = _as_int(raw.get("row"))
    column = _as_int(raw.get("column", raw.get("col")))
    sheet = raw.get("sheet")
    value = raw.get("value", raw.get("replace", ""))
    value = "" if value is None else str(value)

    dimensions = extracted.sheet_dimensions
    if not sheet and dimensions:
        sheet = next(iter(dimensions))

    candidate = ChangeInstruction(
        replace_text=value, row=row, column=column, sheet=sheet, reason=str(raw.get("reason", ""))
    )
    if not extracted.is_tabular:
        return None, RejectedInstruction(
            instruction=candidate, error="cell edits require a tabular document"
        )
    if row is None or column is None:
        return None, RejectedInstruction(instruction=candidate, error="row and column are required")
    if sheet not in dimensions:
        return None, RejectedInstruction(instruction=candidate, error=f"unknown sheet {sheet!r}")

    rows, columns = dimensions[sheet]
    if not (0 <= row < rows and 0 <= column < columns):
        return None, RejectedInstruction(
            instruction=candidate,
            error=f"cell ({row}, {column}) is outside the {rows}x{columns} range",
        )
    return candidate, None


def validate_plan(raw_plan: dict, extracted: ExtractedDocument) -> ModificationPlan:
    """
    Turn raw oracle output into a validated plan.

    Invalid instructions are dropped and recorded; this never raises.
    """
    instructions: list[ChangeInstruction] = []
    rejected: list[RejectedInstruction] = []

    for raw in raw_plan.get("changes") or []:
        if not isinstance(raw, dict):
            continue
        accepted, error = _validate_text_change(raw, extracted.plain_text)
        if accepted:
            instructions.append(accepted)
        if error:
            rejected.append(error)

    for raw in raw_plan.get("cell_changes") or []:
        if not isinstance(raw, dict):
            continue
        accepted, error = _validate_cell_change(raw, extracted)
        if accepted:
            instructions.append(accepted)
        if error:
            rejected.append(error)

    added: list[ColumnAddition] = []
    if extracted.is_tabular:
        for raw in raw_plan.get("added_columns") or []:
            if isinstance(raw, dict) and str(raw.get("header", "")).strip():
                added.append(
                    ColumnAddition(
                        header=str(raw["header"]).strip(),
                        default_value=str(raw.get("default_value", raw.get("defaultValue", "")) or ""),
                        sheet=raw.get("sheet"),
                    )
                )

    return ModificationPlan(
        instructions=instructions,
        added_columns=added,
        explanation=str(raw_plan.get("explanation", "") or ""),
        validation_errors=rejected,
    )


# =============================================================================
# Entry point
# =============================================================================


async def plan_modifications(
    extracted: ExtractedDocument,
    user_instruction: str,
    session_context: list[SessionMessage] | tuple[SessionMessage, ...] = (),
    conversation_id: str | None = None,
) -> ModificationPlan:
    """
    Ask the oracle for a modification plan and validate it.

    Returns:
        ModificationPlan with at least one instruction or added column

    Raises:
        NoValidChanges: If the oracle fails or nothing survives validation
    """
    messages = build_planner_messages(extracted, user_instruction, session_context)
    try:
        raw_plan = await call_oracle_json(
            messages,
            tier=ModelTier.STANDARD,
            temperature=0.1,
            max_tokens=4000,
            chain="plan_modifications",
            conversation_id=conversation_id,
        )
    except OracleError as e:
        logger.warning(f"Modification planning failed: {e}")
        raise NoValidChanges("The edit could not be planned right now.") from e

    plan = validate_plan(raw_plan, extracted)
    for rejected in plan.validation_errors:
        logger.info(f"Dropped planned change: {rejected.error}")

    if plan.is_empty:
        raise NoValidChanges()

    logger.info(
        f"Modification plan: {len(plan.instructions)} instructions, "
        f"{len(plan.added_columns)} added columns, {len(plan.validation_errors)} rejected"
    )
    return plan
