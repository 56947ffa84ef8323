"""
School-list copilot: the upload → extraction → matching → results state
machine and the orchestration of the remote steps
"""

import logging
import time
from concurrent.futures import ThreadPoolExecutor
from enum import Enum
from pathlib import Path
from typing import Callable, Dict, List, Optional, Tuple

from backend_client import BackendClient, BackendError
from cart_builder import build_tier_carts
from config import (
    BACKEND_USER_ID,
    MAX_SCHOOL_LIST_SIZE_MB,
    SCHOOL_LIST_BUCKET,
    SCHOOL_LIST_EXTENSIONS,
)
from file_processor import FileProcessor
from models import SchoolListCart, SchoolListMatch, SchoolListUpload

logger = logging.getLogger(__name__)

PROCESS_FUNCTION = "process-school-list"
MATCH_FUNCTION = "match-school-products"


class CopilotState(str, Enum):
    UPLOAD = "upload"
    PROCESSING = "processing"
    MATCHING = "matching"
    RESULTS = "results"


class CopilotEvent(str, Enum):
    UPLOADED = "uploaded"
    EXTRACTED = "extracted"
    MATCHED = "matched"
    FAILED = "failed"
    RESET = "reset"


# Pairs missing here leave the state unchanged; RESET is handled for every state
TRANSITIONS: Dict[Tuple[CopilotState, CopilotEvent], CopilotState] = {
    (CopilotState.UPLOAD, CopilotEvent.UPLOADED): CopilotState.PROCESSING,
    (CopilotState.PROCESSING, CopilotEvent.EXTRACTED): CopilotState.MATCHING,
    (CopilotState.MATCHING, CopilotEvent.MATCHED): CopilotState.RESULTS,
    (CopilotState.PROCESSING, CopilotEvent.FAILED): CopilotState.UPLOAD,
    (CopilotState.MATCHING, CopilotEvent.FAILED): CopilotState.UPLOAD,
}

STEP_LABELS: Dict[CopilotState, str] = {
    CopilotState.UPLOAD: "Upload",
    CopilotState.PROCESSING: "Extraction",
    CopilotState.MATCHING: "Matching",
    CopilotState.RESULTS: "Résultats",
}

STEP_ORDER = [
    CopilotState.UPLOAD,
    CopilotState.PROCESSING,
    CopilotState.MATCHING,
    CopilotState.RESULTS,
]


def transition(state: CopilotState, event: CopilotEvent) -> CopilotState:
    if event == CopilotEvent.RESET:
        return CopilotState.UPLOAD
    return TRANSITIONS.get((state, event), state)


class UploadRejectedError(Exception):
    """The school-list file has an unsupported type or is too large"""


def validate_school_list(file_name: str, size_bytes: int) -> None:
    ext = Path(file_name or "").suffix.lower()
    if ext not in SCHOOL_LIST_EXTENSIONS:
        raise UploadRejectedError(
            f"Format non supporté ({ext or 'sans extension'}). "
            f"Formats acceptés : {', '.join(SCHOOL_LIST_EXTENSIONS)}"
        )
    if not FileProcessor.validate_file_size(size_bytes, MAX_SCHOOL_LIST_SIZE_MB):
        raise UploadRejectedError(
            f"Fichier trop volumineux ({size_bytes / (1024 * 1024):.1f} Mo, "
            f"maximum {MAX_SCHOOL_LIST_SIZE_MB} Mo)"
        )


# (level, message) with level one of "success", "info", "error"
Notifier = Callable[[str, str], None]


def log_notifier(level: str, message: str) -> None:
    if level == "error":
        logger.error(f"❌ {message}")
    else:
        logger.info(f"✅ {message}")


class SchoolCopilot:
    """Holds one copilot session and drives it through the remote steps"""

    def __init__(
        self,
        backend: BackendClient,
        owner_id: Optional[str] = BACKEND_USER_ID,
        notify: Optional[Notifier] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.backend = backend
        self.owner_id = owner_id or "anonymous"
        self.notify = notify or log_notifier
        self.clock = clock

        self.state = CopilotState.UPLOAD
        self.generation = 0
        self.upload: Optional[SchoolListUpload] = None
        self.matches: List[SchoolListMatch] = []
        self.carts: List[SchoolListCart] = []

    def dispatch(self, event: CopilotEvent) -> CopilotState:
        previous = self.state
        self.state = transition(self.state, event)
        logger.debug(f"Copilot {previous.value} --{event.value}--> {self.state.value}")
        return self.state

    def reset(self) -> None:
        """Back to upload; responses of calls still in flight will be ignored"""
        self.generation += 1
        self.upload = None
        self.matches = []
        self.carts = []
        self.dispatch(CopilotEvent.RESET)

    def _is_stale(self, generation: int) -> bool:
        if generation != self.generation:
            logger.info("⏭️ Discarding response from a reset copilot session")
            return True
        return False

    def _fail(self, message: str, error: Exception) -> None:
        logger.error(f"🚨 {message}: {error}")
        self.notify("error", f"{message} : {error}")
        self.upload = None
        self.matches = []
        self.carts = []
        self.dispatch(CopilotEvent.FAILED)

    def run(
        self,
        file_name: str,
        content: bytes,
        content_type: Optional[str] = None,
        school_name: Optional[str] = None,
        class_level: Optional[str] = None,
    ) -> bool:
        """
        Full pipeline for one file.

        Raises UploadRejectedError before any remote call when the file is
        not acceptable. Remote failures are notified once and send the
        session back to upload; the return value tells whether results
        are available.
        """
        validate_school_list(file_name, len(content))
        generation = self.generation

        upload = self.upload_file(file_name, content, content_type, school_name, class_level)
        if upload is None or self._is_stale(generation):
            return False

        if self.process_upload(upload.id) is None or self._is_stale(generation):
            return False

        return self.match_products(upload.id, generation) is not None

    def upload_file(
        self,
        file_name: str,
        content: bytes,
        content_type: Optional[str] = None,
        school_name: Optional[str] = None,
        class_level: Optional[str] = None,
    ) -> Optional[SchoolListUpload]:
        """Store the file, create its upload record and move to processing"""
        ext = Path(file_name).suffix.lstrip(".").lower() or "bin"
        file_path = f"{self.owner_id}/{int(self.clock() * 1000)}.{ext}"

        try:
            self.backend.upload_file(SCHOOL_LIST_BUCKET, file_path, content, content_type)
            rows = self.backend.insert(
                "school_list_uploads",
                {
                    "user_id": None if self.owner_id == "anonymous" else self.owner_id,
                    "file_path": file_path,
                    "file_name": file_name,
                    "file_type": content_type,
                    "school_name": school_name or None,
                    "class_level": class_level or None,
                    "status": "pending",
                },
            )
            if not rows:
                raise BackendError("Upload record was not returned")
        except BackendError as e:
            self._fail("Erreur lors de l'upload", e)
            return None

        self.upload = SchoolListUpload.from_dict(rows[0])
        logger.info(f"📤 School list uploaded: {file_name} → {self.upload.id}")
        self.dispatch(CopilotEvent.UPLOADED)
        return self.upload

    def process_upload(self, upload_id: str) -> Optional[Dict]:
        """Run the remote extraction and move to matching"""
        generation = self.generation
        try:
            data = self.backend.invoke(PROCESS_FUNCTION, {"uploadId": upload_id})
        except BackendError as e:
            if not self._is_stale(generation):
                self._fail("Erreur lors du traitement", e)
            return None

        if self._is_stale(generation):
            return None

        self.notify("success", f"{int(data.get('items_count') or 0)} articles extraits")
        self.dispatch(CopilotEvent.EXTRACTED)
        return data

    def match_products(
        self, upload_id: str, generation: Optional[int] = None
    ) -> Optional[Dict]:
        """Run the remote matching, then load matches and carts"""
        generation = self.generation if generation is None else generation
        try:
            data = self.backend.invoke(MATCH_FUNCTION, {"uploadId": upload_id})
            matches, carts = self._fetch_results(upload_id)
        except BackendError as e:
            if not self._is_stale(generation):
                self._fail("Erreur lors du matching", e)
            return None

        if self._is_stale(generation):
            return None

        self.matches = matches
        self.carts = carts
        self.notify(
            "success",
            f"{int(data.get('matched') or 0)} produits trouvés, "
            f"{int(data.get('unmatched') or 0)} sans correspondance",
        )
        self.dispatch(CopilotEvent.MATCHED)
        return data

    def fetch_upload_data(self, upload_id: str) -> None:
        """Reload an upload with its matches and carts"""
        generation = self.generation
        with ThreadPoolExecutor(max_workers=3) as executor:
            upload_future = executor.submit(
                self.backend.select_one, "school_list_uploads", eq={"id": upload_id}
            )
            matches_future = executor.submit(self._fetch_matches, upload_id)
            carts_future = executor.submit(self._fetch_carts, upload_id)
            upload_row = upload_future.result()
            matches = matches_future.result()
            carts = carts_future.result()

        if self._is_stale(generation):
            return

        if upload_row:
            self.upload = SchoolListUpload.from_dict(upload_row)
        self.matches = matches
        self.carts = carts or self._local_carts(upload_id, matches)

    def _fetch_results(
        self, upload_id: str
    ) -> Tuple[List[SchoolListMatch], List[SchoolListCart]]:
        with ThreadPoolExecutor(max_workers=2) as executor:
            matches_future = executor.submit(self._fetch_matches, upload_id)
            carts_future = executor.submit(self._fetch_carts, upload_id)
            matches = matches_future.result()
            carts = carts_future.result()

        return matches, carts or self._local_carts(upload_id, matches)

    def _fetch_matches(self, upload_id: str) -> List[SchoolListMatch]:
        rows = self.backend.select(
            "school_list_matches", eq={"upload_id": upload_id}, order="item_label"
        )
        return [SchoolListMatch.from_dict(row) for row in rows]

    def _fetch_carts(self, upload_id: str) -> List[SchoolListCart]:
        rows = self.backend.select(
            "school_list_carts", eq={"upload_id": upload_id}, order="tier"
        )
        carts = []
        for row in rows:
            try:
                carts.append(SchoolListCart.from_dict(row))
            except (KeyError, ValueError):
                logger.warning(f"Skipping cart with unknown tier: {row.get('tier')}")
        return carts

    @staticmethod
    def _local_carts(
        upload_id: str, matches: List[SchoolListMatch]
    ) -> List[SchoolListCart]:
        if not any(m.candidates for m in matches):
            return []
        logger.info("🔧 No stored carts, building tiers locally")
        return build_tier_carts(upload_id, matches)
