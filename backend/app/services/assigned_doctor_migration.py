"""Online rewrite of legacy ``assigned_doctor_ref`` values to doctor user ids.

Each legacy row is rewritten with a conditional update keyed on the value read
during the scan, so a reassignment that lands between the read and the write
is never overwritten. Rows are committed one at a time; a failed write is
counted and logged, and the run moves on. Re-running finds fewer legacy rows
each time and is a no-op once the data has converged.
"""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass
from typing import Iterator

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from app.models.patient_profile import PatientProfile
from app.services.doctor_index import DoctorIndex, build_doctor_index
from app.services.identity import ResolutionKind

logger = logging.getLogger(__name__)

DEFAULT_BATCH_SIZE = 500


@dataclass
class MigrationStats:
    dry_run: bool = False
    doctors_indexed: int = 0
    scanned: int = 0
    canonical_already: int = 0
    legacy_found: int = 0
    updated: int = 0
    would_update: int = 0
    skipped_unmapped: int = 0
    skipped_ambiguous: int = 0
    skipped_invalid: int = 0
    update_noop: int = 0
    update_failed: int = 0

    def as_dict(self) -> dict[str, int | bool]:
        return asdict(self)


def stream_assigned_profiles(
    db: Session,
    limit: int | None = None,
    batch_size: int = DEFAULT_BATCH_SIZE,
) -> Iterator[tuple[str, str]]:
    """Yield ``(profile_id, assigned_doctor_ref)`` pairs page by page.

    Pages are keyed on the primary key, so each page is a fresh query and
    commits issued by the caller between pages do not disturb the scan.
    """
    batch_size = max(1, batch_size)
    remaining = limit
    last_id: str | None = None
    while True:
        page_size = batch_size
        if remaining is not None:
            if remaining <= 0:
                break
            page_size = min(batch_size, remaining)
        stmt = (
            select(PatientProfile.id, PatientProfile.assigned_doctor_ref)
            .where(PatientProfile.assigned_doctor_ref.is_not(None))
            .order_by(PatientProfile.id)
            .limit(page_size)
        )
        if last_id is not None:
            stmt = stmt.where(PatientProfile.id > last_id)
        rows = db.execute(stmt).all()
        if not rows:
            break
        for profile_id, assigned_doctor_ref in rows:
            last_id = profile_id
            yield profile_id, assigned_doctor_ref
            if remaining is not None:
                remaining -= 1
        if len(rows) < page_size:
            break


def apply_conditional_update(
    db: Session,
    profile_id: str,
    observed_ref: str,
    mapped_ref: str,
) -> bool:
    """Swap ``observed_ref`` for ``mapped_ref``; False when the row moved on."""
    result = db.execute(
        update(PatientProfile)
        .where(
            PatientProfile.id == profile_id,
            PatientProfile.assigned_doctor_ref == observed_ref,
        )
        .values(assigned_doctor_ref=mapped_ref)
        .execution_options(synchronize_session=False)
    )
    db.commit()
    return bool(result.rowcount)


def migrate_assigned_doctor_ids(
    db: Session,
    *,
    dry_run: bool = False,
    limit: int | None = None,
    batch_size: int = DEFAULT_BATCH_SIZE,
    index: DoctorIndex | None = None,
) -> MigrationStats:
    if limit is not None and limit <= 0:
        raise ValueError("limit must be a positive integer")

    if index is None:
        index = build_doctor_index(db)
    stats = MigrationStats(dry_run=dry_run, doctors_indexed=index.doctors_scanned)

    for profile_id, assigned_doctor_ref in stream_assigned_profiles(
        db, limit=limit, batch_size=batch_size
    ):
        stats.scanned += 1
        resolution = index.resolve(assigned_doctor_ref)

        if resolution.kind is ResolutionKind.invalid:
            stats.skipped_invalid += 1
            continue
        if resolution.kind is ResolutionKind.ambiguous:
            stats.skipped_ambiguous += 1
            logger.warning(
                "Ambiguous assigned doctor reference skipped",
                extra={"profile_id": profile_id, "assigned_doctor_ref": resolution.value},
            )
            continue
        if resolution.kind is ResolutionKind.already_canonical:
            stats.canonical_already += 1
            continue
        if resolution.kind is ResolutionKind.unmapped:
            stats.skipped_unmapped += 1
            continue

        stats.legacy_found += 1
        if dry_run:
            stats.would_update += 1
            continue

        try:
            changed = apply_conditional_update(
                db, profile_id, assigned_doctor_ref, resolution.mapped
            )
        except Exception:
            db.rollback()
            stats.update_failed += 1
            logger.exception("Failed to migrate profile %s", profile_id)
            continue

        if changed:
            stats.updated += 1
        else:
            stats.update_noop += 1
            logger.info(
                "Assigned doctor changed concurrently; left as is",
                extra={"profile_id": profile_id},
            )

    logger.info("Assigned doctor migration finished", extra=stats.as_dict())
    return stats


def format_summary(stats: MigrationStats) -> list[str]:
    mode = "DRY RUN (no writes)" if stats.dry_run else "LIVE (writes applied)"
    lines = [
        "--- Assigned Doctor ID Migration Summary ---",
        f"Mode: {mode}",
        f"Doctor users indexed: {stats.doctors_indexed}",
        f"Patient profiles scanned: {stats.scanned}",
        f"Already canonical (doctor user id): {stats.canonical_already}",
        f"Legacy profile id assignments detected: {stats.legacy_found}",
    ]
    if stats.dry_run:
        lines.append(f"Would update: {stats.would_update}")
    else:
        lines.append(f"Updated: {stats.updated}")
        lines.append(f"Update no-op (concurrent change/not matched): {stats.update_noop}")
        lines.append(f"Update failed: {stats.update_failed}")
    lines.append(f"Skipped (unmapped assigned_doctor_ref): {stats.skipped_unmapped}")
    lines.append(f"Skipped (invalid assigned_doctor_ref): {stats.skipped_invalid}")
    lines.append(f"Skipped (ambiguous collision): {stats.skipped_ambiguous}")
    return lines
