"""
填表运行状态机决策模块

职责：
- 统一 FormFillOrchestrator.run() 中的关键分支决策
- 保持决策纯函数化，便于测试与回放
"""

from __future__ import annotations

from typing import Literal

FillPhase = Literal[
    "waiting_for_form",
    "filling",
    "uploading",
    "done_success",
    "done_partial",
    "failed",
]
Outcome = Literal["success", "partial", "failed"]
UploadPath = Literal["skip", "upload"]

FORM_NOT_READY_MESSAGE = "Form did not load properly. Try refreshing the page."
SUCCESS_MESSAGE = "Form filled successfully!"
PARTIAL_FIELDS_NOTE = "review the empty fields before publishing"


def decide_form_ready(control_count: int, *, threshold: int) -> bool:
    return control_count > threshold


def decide_upload_path(image_count: int) -> UploadPath:
    if image_count <= 0:
        return "skip"
    return "upload"


def decide_final_outcome(
    *,
    form_ready: bool,
    attempted_fields: int,
    filled_fields: int,
    upload_attempted: bool,
    upload_bound: bool,
    assets_requested: int,
    assets_acquired: int,
) -> Outcome:
    # 只有表单未就绪才算失败；表单已加载时，字段或图片失败都只降级为 partial，
    # 剩下的交给人工补全
    if not form_ready:
        return "failed"
    if filled_fields < attempted_fields:
        return "partial"
    if upload_attempted:
        if not upload_bound or assets_acquired < assets_requested:
            return "partial"
    return "success"


def phase_for_outcome(outcome: Outcome) -> FillPhase:
    if outcome == "success":
        return "done_success"
    if outcome == "partial":
        return "done_partial"
    return "failed"


def compose_final_message(
    outcome: Outcome,
    *,
    fields_incomplete: bool = False,
    upload_note: str = "",
) -> tuple[str, str]:
    """
    返回 (message, severity)，每次运行只发送这一条终态消息。

    不点名具体字段：字段级失败只进日志与诊断文件。
    """
    if outcome == "success":
        return SUCCESS_MESSAGE, "success"
    if outcome == "failed":
        return FORM_NOT_READY_MESSAGE, "error"

    notes: list[str] = []
    if fields_incomplete:
        notes.append(PARTIAL_FIELDS_NOTE)
    if upload_note:
        notes.append(upload_note)
    detail = "; ".join(notes) if notes else "review before publishing"
    return f"Form partially filled: {detail}.", "warning"
