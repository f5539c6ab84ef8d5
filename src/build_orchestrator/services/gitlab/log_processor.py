"""Incremental processing of GitLab job logs."""

from typing import Dict, Optional, Tuple


class LogProcessor:
    """Tracks how much of each job's trace has already been emitted.

    One instance belongs to one pipeline monitoring loop and is discarded
    with it.
    """

    def __init__(self):
        self._offsets: Dict[int, int] = {}

    def offset(self, job_id: int) -> int:
        return self._offsets.get(job_id, 0)

    def consume(self, job_id: int, trace: str) -> Optional[str]:
        """Return the part of ``trace`` not emitted yet and advance the cursor.

        Args:
            job_id: Job the trace belongs to
            trace: Full log text as currently returned by GitLab

        Returns:
            The new suffix, or None when nothing new arrived
        """
        new_text, new_offset = self.new_output(trace, self.offset(job_id))
        if new_text is None:
            return None
        self._offsets[job_id] = new_offset
        return new_text

    @staticmethod
    def new_output(trace: str, offset: int) -> Tuple[Optional[str], int]:
        """Split a trace at ``offset``.

        A trace that did not grow (or shrank) yields nothing and keeps the
        offset unchanged.
        """
        if len(trace) <= offset:
            return None, offset
        return trace[offset:], len(trace)
