"""
DraftStore — per-session application progress with versioning.

Versioning rules (one draft per session, writes serialised per session):
  - draft_version goes up by exactly 1 on every accepted save, never down
  - each step keeps its own version: 1 on first save, +1 on every re-save
  - highest_completed_step is a running max over steps saved with is_complete
  - a step payload is replaced wholesale on each save (last write wins); it is
    stored once, under steps, and data["step_{n}"] is rebuilt from it on read
  - step numbers start at 1; anything lower is a ValidationFailure
  - a submitted draft is frozen: saves return Conflict and change nothing

Retried saves are not deduplicated by content; a retry is simply another save
and advances both counters again.

The store does not check that the owning session is alive — that is the
caller's policy (see dependencies.require_live_session).
"""
from __future__ import annotations

import logging
import secrets
from datetime import datetime
from typing import Any, Optional, Union

from onboarding.cache import make_draft_key
from onboarding.clock import Clock, SystemClock
from onboarding.draft.schemas import (
    Draft,
    DraftRecord,
    DraftSaveReceipt,
    StepData,
    StepRecord,
    StepVersion,
    SubmissionReceipt,
)
from onboarding.results import Conflict, NotFound, Ok, ValidationFailure
from onboarding.stores.base import StateStore

logger = logging.getLogger(__name__)


def generate_application_id(now: datetime) -> str:
    """APP_20260130_004217"""
    return f"APP_{now:%Y%m%d}_{secrets.randbelow(1_000_000):06d}"


def generate_reference_number(now: datetime) -> str:
    """MTBCC-20260130-004217 — the number quoted to the applicant"""
    return f"MTBCC-{now:%Y%m%d}-{secrets.randbelow(1_000_000):06d}"


def step_data_key(step_number: int) -> str:
    return f"step_{step_number}"


class DraftStore:
    def __init__(
        self,
        store: StateStore,
        clock: Optional[Clock] = None,
        key_prefix: str = "",
    ) -> None:
        self._store = store
        self._clock = clock or SystemClock()
        self._key_prefix = key_prefix

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _key(self, session_id: str) -> str:
        return make_draft_key(session_id, self._key_prefix)

    def _new_record(self, session_id: str) -> DraftRecord:
        now = self._clock.now()
        return DraftRecord(
            session_id=session_id,
            application_id=generate_application_id(now),
            reference_number=generate_reference_number(now),
            current_step=1,
            highest_completed_step=0,
            draft_version=1,
            last_saved_at=now,
            created_at=now,
        )

    async def _load(self, session_id: str) -> Optional[DraftRecord]:
        raw = await self._store.get(self._key(session_id))
        if raw is None:
            return None
        return DraftRecord.model_validate(raw)

    async def _save(self, record: DraftRecord) -> None:
        # Drafts carry no store TTL: they outlive the session until cleared
        # data is derived from steps in _view and never stored
        await self._store.set(
            self._key(record.session_id),
            record.model_dump(mode="json", exclude={"data"}),
        )

    @staticmethod
    def _view(record: DraftRecord) -> Draft:
        view = Draft.model_validate(record.model_dump(exclude={"steps", "data"}))
        view.data = {step_data_key(int(n)): step.data for n, step in record.steps.items()}
        return view

    # ------------------------------------------------------------------
    # Creation
    # ------------------------------------------------------------------

    async def initialize_draft(self, session_id: str) -> Draft:
        """
        Start a fresh draft for the session, DISCARDING any existing one.

        Re-initialising is destructive on purpose: the wizard calls this when the
        applicant chooses "start over". Use get_or_initialize_draft() to resume.
        """
        key = self._key(session_id)
        async with self._store.lock(key):
            previous = await self._load(session_id)
            record = self._new_record(session_id)
            await self._save(record)

        if previous is not None:
            logger.info(
                "Re-initialized draft session_id=%s discarded_version=%d",
                session_id,
                previous.draft_version,
            )
        else:
            logger.info("Initialized draft session_id=%s application_id=%s", session_id, record.application_id)
        return self._view(record)

    async def get_or_initialize_draft(self, session_id: str) -> Draft:
        """Return the existing draft, creating one only if the session has none."""
        key = self._key(session_id)
        async with self._store.lock(key):
            record = await self._load(session_id)
            if record is None:
                record = self._new_record(session_id)
                await self._save(record)
                logger.info("Initialized draft session_id=%s application_id=%s", session_id, record.application_id)
        return self._view(record)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def get_draft(self, session_id: str) -> Optional[Draft]:
        """None means "no draft yet" — not an error."""
        record = await self._load(session_id)
        if record is None:
            return None
        return self._view(record)

    async def get_step_versions(self, session_id: str) -> list[StepVersion]:
        record = await self._load(session_id)
        if record is None:
            return []
        return list(record.step_versions)

    async def get_step_data(self, session_id: str, step_number: int) -> Optional[StepData]:
        record = await self._load(session_id)
        if record is None:
            return None
        step = record.steps.get(str(step_number))
        if step is None:
            return None
        return StepData(data=step.data, is_complete=step.is_complete)

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def save_draft_step(
        self,
        session_id: str,
        step_number: int,
        step_name: str,
        payload: dict[str, Any],
        is_complete: bool = False,
        auto_create: bool = True,
    ) -> Union[Ok[DraftSaveReceipt], NotFound, Conflict, ValidationFailure]:
        """
        Apply one step save.

        A missing draft is created on the fly with initialize_draft() defaults
        (version 1), so the first save on a fresh session lands on version 2.
        Pass auto_create=False to get NotFound instead.
        """
        if step_number < 1:
            return ValidationFailure(field="stepNumber", issue="Step number must be 1 or greater")

        key = self._key(session_id)
        async with self._store.lock(key):
            record = await self._load(session_id)
            if record is None:
                if not auto_create:
                    return NotFound(key=session_id)
                record = self._new_record(session_id)
                logger.info("Auto-created draft on save session_id=%s", session_id)

            if record.is_submitted:
                logger.warning(
                    "Rejected save to submitted draft session_id=%s step=%d",
                    session_id,
                    step_number,
                )
                return Conflict(key=session_id, reason="Application has already been submitted")

            now = self._clock.now()

            # ---- Step version: bump in place or append ---------------------
            index = next(
                (i for i, v in enumerate(record.step_versions) if v.step_number == step_number),
                None,
            )
            version = record.step_versions[index].version + 1 if index is not None else 1
            step_version = StepVersion(
                step_number=step_number,
                step_name=step_name,
                version=version,
                saved_at=now,
                is_complete=is_complete,
            )
            if index is not None:
                record.step_versions[index] = step_version
            else:
                record.step_versions.append(step_version)

            # ---- Payload: last write wins, no merge ------------------------
            record.steps[str(step_number)] = StepRecord(
                step_name=step_name,
                data=payload,
                is_complete=is_complete,
                saved_at=now,
            )

            record.current_step = step_number
            record.draft_version += 1
            if is_complete and step_number > record.highest_completed_step:
                record.highest_completed_step = step_number
            record.last_saved_at = now

            await self._save(record)

        logger.info(
            "Saved draft step session_id=%s step=%d step_version=%d draft_version=%d",
            session_id,
            step_number,
            version,
            record.draft_version,
        )
        return Ok(DraftSaveReceipt(draft_version=record.draft_version, saved_at=now))

    async def clear_draft(self, session_id: str) -> None:
        """
        Freeze the draft after submission. The record is kept so get_draft()
        still shows the last state with is_submitted set. No-op without a draft.
        """
        key = self._key(session_id)
        async with self._store.lock(key):
            record = await self._load(session_id)
            if record is None or record.is_submitted:
                return
            record.is_submitted = True
            record.submitted_at = self._clock.now()
            await self._save(record)
        logger.info("Cleared draft session_id=%s draft_version=%d", session_id, record.draft_version)

    async def submit_draft(self, session_id: str) -> Union[Ok[SubmissionReceipt], NotFound, Conflict]:
        """Final submission: freeze the draft and hand back the applicant's reference number."""
        key = self._key(session_id)
        async with self._store.lock(key):
            record = await self._load(session_id)
            if record is None:
                return NotFound(key=session_id)
            if record.is_submitted:
                return Conflict(key=session_id, reason="Application has already been submitted")

            record.is_submitted = True
            record.submitted_at = self._clock.now()
            await self._save(record)

        logger.info(
            "Submitted application session_id=%s application_id=%s draft_version=%d",
            session_id,
            record.application_id,
            record.draft_version,
        )
        return Ok(
            SubmissionReceipt(
                reference_number=record.reference_number,
                application_id=record.application_id,
                submitted_at=record.submitted_at,
            )
        )
