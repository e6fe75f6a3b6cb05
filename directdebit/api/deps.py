"""
Wiring of collaborators into the lifecycle components.

Routes receive components through FastAPI Depends(), so tests swap in
in-memory stores with app.dependency_overrides and no network is touched.
Backends come from settings; the memory backend is cached per process so a
local run keeps its data across requests.
"""
from functools import lru_cache

from directdebit.core.export import ExportEncoder
from directdebit.core.handoff import HandoffBuilder
from directdebit.core.receiver import VerificationReceiver
from directdebit.settings import settings
from directdebit.store.blob_store import BlobStore, FilesystemBlobStore
from directdebit.store.customer_directory import CustomerDirectory, build_customer_directory
from directdebit.store.secret_store import SecretStore, build_secret_store
from directdebit.store.submission_repo import SubmissionStore, build_submission_store


@lru_cache(maxsize=1)
def _memory_submission_store() -> SubmissionStore:
    return build_submission_store()


@lru_cache(maxsize=1)
def _memory_customer_directory() -> CustomerDirectory:
    return build_customer_directory()


def get_submission_store() -> SubmissionStore:
    if settings.STORE_BACKEND == "memory":
        return _memory_submission_store()
    return build_submission_store()


def get_customer_directory() -> CustomerDirectory:
    if settings.STORE_BACKEND == "memory":
        return _memory_customer_directory()
    return build_customer_directory()


def get_secret_store() -> SecretStore:
    return build_secret_store()


def get_blob_store() -> BlobStore:
    return FilesystemBlobStore(settings.EXPORT_DIR)


def build_handoff_builder(store: SubmissionStore, secrets: SecretStore) -> HandoffBuilder:
    return HandoffBuilder(
        store,
        secrets,
        callback_url=settings.CALLBACK_URL,
        verification_base_url=settings.VERIFICATION_BASE_URL,
    )


def build_export_encoder(store: SubmissionStore, blobs: BlobStore) -> ExportEncoder:
    return ExportEncoder(store, blobs, mark_concurrency=settings.EXPORT_MARK_CONCURRENCY)


def build_receiver(store: SubmissionStore) -> VerificationReceiver:
    return VerificationReceiver(store)
