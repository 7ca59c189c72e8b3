"""Visual pipeline editing: coalesced sync of graph edits to the stage list."""

from missionflow.editor.scheduler import CoalescingScheduler
from missionflow.editor.session import PipelineEditorSession

__all__ = [
    "CoalescingScheduler",
    "PipelineEditorSession",
]
