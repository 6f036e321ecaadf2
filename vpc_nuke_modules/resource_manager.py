import logging
import random
import threading
import time
from typing import Any, Dict, Optional

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from vpc_nuke_modules.config import NukeConfig
from vpc_nuke_modules.errors import (
    ConflictError,
    ErrorKind,
    TransportError,
    ValidationError,
    classify_client_error,
)
from vpc_nuke_modules.events import EventSink, LoggingEventSink, Outcome, ProgressEvent
from vpc_nuke_modules.resource_lister import ResourceLister

logger = logging.getLogger(__name__)


class ResourceManager:
    """Base class for the per-region EC2 operations.

    Each instance owns one ec2 client for one region; nothing is shared
    between regions.
    """

    def __init__(
        self,
        region: str,
        ec2_client: Any = None,
        config: Optional[NukeConfig] = None,
        sink: Optional[EventSink] = None,
        session: Optional[boto3.Session] = None,
    ):
        self.region = region
        self.config = config or NukeConfig()
        self.dry_run = self.config.dry_run
        if ec2_client is None:
            session = session or boto3.Session(profile_name=self.config.profile)
            ec2_client = session.client("ec2", region_name=region, config=self.config.client_config())
        self.ec2_client = ec2_client
        self.sink = sink or LoggingEventSink()
        self.lister = ResourceLister(self.ec2_client, region)
        self.logger = self._setup_logger()
        self._count_lock = threading.Lock()
        self.mutation_count = 0

    def _setup_logger(self):
        logger = logging.getLogger(self.__class__.__name__)
        if not logger.handlers and not logging.getLogger().handlers:
            handler = logging.StreamHandler()
            formatter = logging.Formatter('%(asctime)s - %(name)s - %(levelname)s - %(message)s')
            handler.setFormatter(formatter)
            logger.addHandler(handler)
            logger.setLevel(logging.INFO)
        return logger

    def emit(self, stage: str, kind: str, resource_id: str, label: str, action: str,
             outcome: Outcome, error: Optional[BaseException] = None) -> None:
        self.sink(
            ProgressEvent(
                region=self.region,
                stage=stage,
                kind=kind,
                resource_id=resource_id,
                label=label,
                action=action,
                outcome=outcome,
                error=str(error) if error else None,
            )
        )

    def mutate(self, stage: str, kind: str, resource_id: str, label: str, action: str,
               operation: str, **params) -> Outcome:
        """Issue one mutating call.

        Not-found answers are no-ops, dependency conflicts are retried with
        backoff, everything else is raised as a NukeError.
        """
        if self.dry_run:
            self.emit(stage, kind, resource_id, label, action, Outcome.DRY_RUN)
            return Outcome.DRY_RUN

        attempt = 0
        while True:
            attempt += 1
            try:
                self._count_mutation()
                response = getattr(self.ec2_client, operation)(**params)
                self._raise_unsuccessful(operation, response)
            except ClientError as e:
                error_kind = classify_client_error(e)
                if error_kind is ErrorKind.NOT_FOUND:
                    self.emit(stage, kind, resource_id, label, action, Outcome.ABSENT)
                    return Outcome.ABSENT
                if error_kind is ErrorKind.CONFLICT and attempt < self.config.max_attempts:
                    delay = self.config.base_delay * (2 ** (attempt - 1)) * random.uniform(0.5, 1.5)
                    self.logger.warning(
                        f"[{self.region}] {operation} on {resource_id} failed ({e}); "
                        f"retrying in {delay:.2f} seconds (attempt {attempt}/{self.config.max_attempts})"
                    )
                    time.sleep(delay)
                    continue
                self.emit(stage, kind, resource_id, label, action, Outcome.FAILED, e)
                raise self._wrap(error_kind, operation, resource_id, e) from e
            except BotoCoreError as e:
                self.emit(stage, kind, resource_id, label, action, Outcome.FAILED, e)
                raise TransportError(f"[{self.region}] {operation} on {resource_id} failed: {e}") from e

            self.emit(stage, kind, resource_id, label, action, Outcome.DONE)
            return Outcome.DONE

    def _count_mutation(self) -> None:
        with self._count_lock:
            self.mutation_count += 1

    @staticmethod
    def _raise_unsuccessful(operation: str, response: Optional[Dict]) -> None:
        # batch deletes report per-item failures in the body instead of raising
        for item in (response or {}).get("Unsuccessful", []):
            error = item.get("Error", {})
            raise ClientError({"Error": {"Code": error.get("Code", ""), "Message": error.get("Message", "")}},
                              operation)

    def _wrap(self, error_kind: ErrorKind, operation: str, resource_id: str, error: ClientError) -> Exception:
        message = f"[{self.region}] {operation} on {resource_id} failed: {error}"
        if error_kind is ErrorKind.CONFLICT:
            return ConflictError(message)
        if error_kind is ErrorKind.VALIDATION:
            return ValidationError(message)
        return TransportError(message)
