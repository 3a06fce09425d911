"""
Workout persistence on top of Supabase tables.

Tables: ``workouts`` (one row per user and date), ``workout_exercises`` and
``workout_sets``. PostgREST runs every request in its own transaction, so a
replace spanning several requests is made safe in two ways:

* replaces of the same (user, date) are serialized with a KeyedLock;
* new child rows are written under a fresh ``revision`` id and become
  visible only when the workout row's ``revision`` is switched to it in one
  update. Readers follow ``workouts.revision``, so they see either the old
  or the new child set, never a half-written or empty one.
"""
from __future__ import annotations

import logging
import uuid
from collections import defaultdict
from typing import Any, Dict, List, Optional, Sequence

from workout_log_api.models import ExerciseInput
from workout_log_api.services.errors import StoreError
from workout_log_api.services.keyed_lock import KeyedLock
from workout_log_api.store import execute

logger = logging.getLogger(__name__)

WORKOUTS_TABLE = "workouts"
EXERCISES_TABLE = "workout_exercises"
SETS_TABLE = "workout_sets"

WORKOUT_COLUMNS = "id,user_id,workout_date,title,notes,revision"
EXERCISE_COLUMNS = "id,name,position"
SET_COLUMNS = "id,exercise_id,set_no,reps,weight_kg"

READ_ATTEMPTS = 3


def _fetch_workout(client: Any, user_id: int, workout_date: str) -> Optional[Dict[str, Any]]:
    rows = execute(
        client.table(WORKOUTS_TABLE)
        .select(WORKOUT_COLUMNS)
        .eq("user_id", user_id)
        .eq("workout_date", workout_date)
        .limit(1),
        "fetch workout",
    )
    return rows[0] if rows else None


class WorkoutReplacer:
    """Full-replace writes of one day's workout with its exercises and sets."""

    def __init__(self, client: Any, locks: Optional[KeyedLock] = None):
        self.client = client
        self.locks = locks or KeyedLock()

    def replace(
        self,
        user_id: int,
        workout_date: str,
        title: Optional[str],
        notes: Optional[str],
        exercises: Sequence[ExerciseInput],
    ) -> str:
        """
        Make ``exercises`` the complete content of the workout for the date.

        Returns:
            The workout id (stable across replaces of the same date)

        Raises:
            StoreError: If any store call fails. Before the swap the staged
                rows are rolled back and the previous content stays visible;
                after it the new content is already visible. A swap that
                reports an error but is found committed counts as success.
        """
        with self.locks.hold((user_id, workout_date)):
            workout_id = self._ensure_workout(user_id, workout_date)
            revision = str(uuid.uuid4())
            logger.debug(
                "Replacing workout %s (user=%s date=%s) with %d exercises as revision %s",
                workout_id, user_id, workout_date, len(exercises), revision,
            )

            staged_ids: List[Any] = []
            try:
                staged_ids = self._insert_exercises(workout_id, revision, exercises)
                self._insert_sets(staged_ids, exercises)
                execute(
                    self.client.table(WORKOUTS_TABLE)
                    .update({"title": title, "notes": notes, "revision": revision})
                    .eq("id", workout_id),
                    "swap workout revision",
                )
            except StoreError:
                # A swap whose response was lost may still have committed.
                published = self._revision_is_live(workout_id, revision)
                if published is None:
                    logger.error(
                        "Outcome of revision %s of workout %s is unknown; keeping its rows",
                        revision, workout_id,
                    )
                    raise
                if not published:
                    self._discard_staged(workout_id, revision, staged_ids)
                    raise
                logger.warning(
                    "Swap of workout %s reported a failure but revision %s is live",
                    workout_id, revision,
                )

            self._collect_stale(workout_id, revision)
            logger.info(
                "Workout %s replaced: %d exercises (user=%s date=%s)",
                workout_id, len(exercises), user_id, workout_date,
            )
            return workout_id

    def _ensure_workout(self, user_id: int, workout_date: str) -> Any:
        execute(
            self.client.table(WORKOUTS_TABLE).upsert(
                {"user_id": user_id, "workout_date": workout_date},
                on_conflict="user_id,workout_date",
                ignore_duplicates=True,
            ),
            "upsert workout",
        )
        row = _fetch_workout(self.client, user_id, workout_date)
        if row is None:
            raise StoreError("workout row missing after upsert", "upsert workout")
        return row["id"]

    def _insert_exercises(
        self, workout_id: Any, revision: str, exercises: Sequence[ExerciseInput]
    ) -> List[Any]:
        if not exercises:
            return []
        rows = [
            {"workout_id": workout_id, "name": ex.name, "position": idx, "revision": revision}
            for idx, ex in enumerate(exercises, start=1)
        ]
        inserted = execute(
            self.client.table(EXERCISES_TABLE).insert(rows),
            "insert exercises",
        )
        # Map by position rather than trusting the order of the returned rows.
        ids_by_position = {row["position"]: row["id"] for row in inserted}
        if len(ids_by_position) != len(rows):
            raise StoreError(
                f"expected {len(rows)} inserted exercises, got {len(ids_by_position)}",
                "insert exercises",
            )
        return [ids_by_position[idx] for idx in range(1, len(rows) + 1)]

    def _insert_sets(self, exercise_ids: List[Any], exercises: Sequence[ExerciseInput]) -> None:
        rows = []
        for exercise_id, ex in zip(exercise_ids, exercises):
            for set_no, s in enumerate(ex.sets, start=1):
                rows.append({
                    "exercise_id": exercise_id,
                    "set_no": set_no,
                    "reps": s.reps,
                    "weight_kg": s.weight_kg,
                })
        if rows:
            execute(self.client.table(SETS_TABLE).insert(rows), "insert sets")

    def _discard_staged(self, workout_id: Any, revision: str, staged_ids: List[Any]) -> None:
        """Best-effort removal of rows written for a revision that never went live."""
        try:
            if staged_ids:
                execute(
                    self.client.table(SETS_TABLE).delete().in_("exercise_id", staged_ids),
                    "discard staged sets",
                )
            execute(
                self.client.table(EXERCISES_TABLE)
                .delete()
                .eq("workout_id", workout_id)
                .eq("revision", revision),
                "discard staged exercises",
            )
        except StoreError:
            logger.exception(
                "Could not discard staged revision %s of workout %s; "
                "the rows are unreachable and will be collected by the next replace",
                revision, workout_id,
            )

    def _live_revision(self, workout_id: Any) -> Optional[str]:
        rows = execute(
            self.client.table(WORKOUTS_TABLE).select("revision").eq("id", workout_id).limit(1),
            "fetch live revision",
        )
        return rows[0].get("revision") if rows else None

    def _revision_is_live(self, workout_id: Any, revision: str) -> Optional[bool]:
        """Whether ``revision`` is published; None when the store cannot say."""
        try:
            return self._live_revision(workout_id) == revision
        except StoreError:
            return None

    def _collect_stale(self, workout_id: Any, revision: str) -> None:
        if self._live_revision(workout_id) != revision:
            # Another process swapped after us; collection is its job now.
            logger.debug("Workout %s moved past revision %s, skipping collection", workout_id, revision)
            return

        rows = execute(
            self.client.table(EXERCISES_TABLE)
            .select("id,revision")
            .eq("workout_id", workout_id),
            "fetch stale exercises",
        )
        stale_ids = [row["id"] for row in rows if row.get("revision") != revision]
        if not stale_ids:
            return
        execute(
            self.client.table(SETS_TABLE).delete().in_("exercise_id", stale_ids),
            "delete stale sets",
        )
        execute(
            self.client.table(EXERCISES_TABLE).delete().in_("id", stale_ids),
            "delete stale exercises",
        )
        logger.debug("Collected %d stale exercises of workout %s", len(stale_ids), workout_id)


class WorkoutReader:
    """Assembles the nested workout → exercises → sets view."""

    def __init__(self, client: Any):
        self.client = client

    def read(self, user_id: int, workout_date: str) -> Optional[Dict[str, Any]]:
        """
        Return the committed workout for the date, or None if there is none.

        Raises:
            StoreError: If a store call fails, or if concurrent replaces kept
                moving the revision for READ_ATTEMPTS consecutive reads.
        """
        for _ in range(READ_ATTEMPTS):
            workout = _fetch_workout(self.client, user_id, workout_date)
            # A row without a revision was created by a replace that has not
            # committed yet.
            if workout is None or workout.get("revision") is None:
                return None

            exercises = execute(
                self.client.table(EXERCISES_TABLE)
                .select(EXERCISE_COLUMNS)
                .eq("workout_id", workout["id"])
                .eq("revision", workout["revision"])
                .order("position"),
                "fetch exercises",
            )
            view = self._assemble(workout, exercises)
            # Revisions are never reused: if it is unchanged now, no replace
            # swapped away from it and collected its rows while we read.
            if not self._revision_moved(workout):
                return view
            logger.debug("Workout %s changed revision during read, retrying", workout["id"])
        raise StoreError(
            f"workout changed during {READ_ATTEMPTS} consecutive reads", "read workout"
        )

    def _revision_moved(self, workout: Dict[str, Any]) -> bool:
        current = _fetch_workout(self.client, workout["user_id"], workout["workout_date"])
        return current is not None and current.get("revision") != workout["revision"]

    def _assemble(self, workout: Dict[str, Any], exercises: List[Dict[str, Any]]) -> Dict[str, Any]:
        sets_by_exercise: Dict[Any, List[Dict[str, Any]]] = defaultdict(list)
        exercise_ids = [ex["id"] for ex in exercises]
        # An empty in_() filter would match every row on some backends.
        if exercise_ids:
            sets = execute(
                self.client.table(SETS_TABLE)
                .select(SET_COLUMNS)
                .in_("exercise_id", exercise_ids)
                .order("set_no"),
                "fetch sets",
            )
            for s in sets:
                sets_by_exercise[s["exercise_id"]].append(s)

        return {
            "id": workout["id"],
            "user_id": workout["user_id"],
            "workout_date": workout["workout_date"],
            "title": workout.get("title"),
            "notes": workout.get("notes"),
            "exercises": [
                {**ex, "sets": sets_by_exercise.get(ex["id"], [])}
                for ex in exercises
            ],
        }
