import logging
import time

from ..errors import StoreError
from ..oplog.models import Insert, Operation, Remove, Update, document_key
from .metrics import observe_store_write
from .store import DocumentStore

logger = logging.getLogger(__name__)


class Applier:
    """
    Applies Operations to a DocumentStore so that re-running a log converges.

    - Insert becomes an upsert by key, so a second run does not hit a
      duplicate key.
    - Update of a missing document succeeds: a later entry in the same log
      may already have removed it on a previous run.
    - Remove of a missing document succeeds for the same reason.

    Exactly one store call is made per operation. Nothing is batched or
    retried.
    """

    def __init__(self, store: DocumentStore) -> None:
        self.store = store

    def apply(self, op: Operation) -> None:
        """
        Perform the store mutation for one operation.
        Raises StoreError on failure.
        """
        namespace = str(op.namespace)
        start_time = time.monotonic()
        status = "success"

        try:
            key = document_key(op)
            if isinstance(op, Insert):
                self.store.upsert(op.namespace, key, op.payload)
            elif isinstance(op, Update):
                if not self.store.update(op.namespace, key, op.payload):
                    logger.debug(
                        "Update matched no document in %s with id=%s; treating as applied",
                        op.namespace,
                        op.id,
                    )
            elif isinstance(op, Remove):
                if not self.store.delete(op.namespace, key):
                    logger.debug(
                        "Remove found no document in %s with id=%s; treating as applied",
                        op.namespace,
                        op.id,
                    )
            else:
                raise StoreError(f"Unsupported operation: {op!r}")

        except StoreError:
            status = "error"
            raise
        except Exception as exc:
            status = "error"
            raise StoreError(
                str(exc), op_type=op.kind.value, namespace=namespace, doc_id=op.id
            ) from exc
        finally:
            latency = time.monotonic() - start_time
            observe_store_write(namespace, op.kind.value, status, latency)
