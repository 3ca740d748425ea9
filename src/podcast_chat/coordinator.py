"""Episode-level operations over the stored episode records.

EpisodeCoordinator is the entry point used by callers (a CLI or TUI): it resolves
episodes by id or id prefix, serializes download and transcription runs per
episode, and keeps the episode flags (is_downloaded, has_transcript) in step with
the work done.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Callable, Iterator, List, Optional, Set

from . import config_constants
from .chat import ChatSessionManager, ChatSessionStore
from .config import Config
from .credentials import OnePasswordCredentialStore
from .downloader import download_to_file
from .exceptions import NotFoundError, PreconditionError
from .models import (
    Episode,
    EpisodeAmbiguous,
    EpisodeFound,
    EpisodeLookup,
    EpisodeNotFound,
    TranscriptionStatus,
)
from .pocketcasts import PocketCastsClient
from .providers.base import ChatModel, TranscriptionModel
from .storage import EpisodeStore, FileSystemStorage
from .sync import EpisodeSyncService
from .transcription.engine import ProgressCallback, TranscriptionEngine
from .utils.cancellation import CancellationToken
from .utils.debug_artifacts import DebugArtifactWriter
from .utils.keyed_lock import KeyedLock

logger = logging.getLogger(__name__)

DownloadProgressCallback = Callable[[int], None]


class EpisodeCoordinator:
    """Idempotent, prefix-addressable operations on stored episodes."""

    def __init__(
        self,
        store: EpisodeStore,
        engine: TranscriptionEngine,
        chat: ChatSessionManager,
        user_agent: str = config_constants.DEFAULT_USER_AGENT,
        timeout: int = config_constants.DEFAULT_TIMEOUT_SECONDS,
        sync_service: Optional[EpisodeSyncService] = None,
    ) -> None:
        self.store = store
        self.engine = engine
        self.chat = chat
        self.user_agent = user_agent
        self.timeout = timeout
        self.sync_service = sync_service
        # Sync rewrites episode records, so it shares the per-episode locks
        self._locks = sync_service.locks if sync_service is not None else KeyedLock()
        # Episodes with a transcription run in this process
        self._active_runs: Set[str] = set()

    @classmethod
    def from_config(
        cls,
        cfg: Config,
        store: Optional[EpisodeStore] = None,
        transcription_model: Optional[TranscriptionModel] = None,
        chat_model: Optional[ChatModel] = None,
        credentials: Optional[OnePasswordCredentialStore] = None,
    ) -> "EpisodeCoordinator":
        """Build the coordinator and its collaborators from configuration.

        A Gemini provider is created for any model not supplied. Its API key comes
        from ``cfg.gemini_api_key`` or, when unset, from the credential store.

        Raises:
            CredentialsError: If an API key is needed and cannot be retrieved
            AuthError: If the resolved API key is empty
        """
        store = store or FileSystemStorage(Path(cfg.data_dir))
        credentials = credentials or OnePasswordCredentialStore(
            login_item=cfg.onepassword_item, api_key_item=cfg.onepassword_api_key_item
        )

        if transcription_model is None or chat_model is None:
            from .providers.gemini import GeminiProvider

            api_key = cfg.gemini_api_key or credentials.get_api_key()
            provider = GeminiProvider(
                api_key=api_key,
                model=cfg.gemini_transcription_model,
                chat_model=cfg.gemini_chat_model,
                max_output_tokens=cfg.max_output_tokens,
            )
            transcription_model = transcription_model or provider
            chat_model = chat_model or provider

        debug_dir = cfg.effective_debug_dir if cfg.save_debug_artifacts else None
        engine = TranscriptionEngine(
            model=transcription_model,
            store=store,
            retry_attempts=cfg.retry_attempts,
            retry_delay_ms=cfg.retry_delay_ms,
            debug_writer=DebugArtifactWriter(debug_dir),
        )
        sync_service = EpisodeSyncService(
            client=PocketCastsClient(base_url=cfg.pocketcasts_base_url, timeout=cfg.timeout),
            credentials=credentials,
            store=store,
        )
        return cls(
            store=store,
            engine=engine,
            chat=ChatSessionManager(chat_model, ChatSessionStore()),
            user_agent=cfg.user_agent,
            timeout=cfg.timeout,
            sync_service=sync_service,
        )

    # ============================================================================
    # Episode records
    # ============================================================================

    def get_episode(self, episode_id: str) -> Optional[Episode]:
        return self.store.get_episode(episode_id)

    def list_episodes(self) -> List[Episode]:
        return self.store.list_episodes()

    def update_episode(self, episode_id: str, **changes: Any) -> Episode:
        """Merge ``changes`` into the stored episode and return the result.

        Raises:
            NotFoundError: If the episode does not exist
            ValidationError: If a field is unknown or a value is invalid
        """
        with self._locks.hold(episode_id):
            return self.store.update_episode(episode_id, changes)

    def _require_episode(self, episode_id: str) -> Episode:
        episode = self.store.get_episode(episode_id)
        if episode is None:
            raise NotFoundError(f"Episode not found: {episode_id}")
        return episode

    def find_episode_by_partial_id(self, prefix: str) -> EpisodeLookup:
        """Resolve an episode from the start of its id.

        Returns:
            EpisodeFound for exactly one match, EpisodeAmbiguous for several,
            EpisodeNotFound for none or an empty prefix
        """
        if not prefix:
            return EpisodeNotFound(prefix=prefix)
        matches = [e for e in self.store.list_episodes() if e.id.startswith(prefix)]
        if not matches:
            logger.debug("No episode id starts with %r", prefix)
            return EpisodeNotFound(prefix=prefix)
        if len(matches) > 1:
            logger.debug("Prefix %r matches %d episodes", prefix, len(matches))
            return EpisodeAmbiguous(prefix=prefix, matches=matches)
        return EpisodeFound(episode=matches[0])

    def sync_episodes(self) -> List[Episode]:
        """Refresh episodes from the remote episode API."""
        if self.sync_service is None:
            raise PreconditionError("No sync service configured")
        return self.sync_service.sync_episodes()

    # ============================================================================
    # Download
    # ============================================================================

    def download_episode(
        self,
        episode_id: str,
        on_progress: Optional[DownloadProgressCallback] = None,
        cancel_token: Optional[CancellationToken] = None,
    ) -> Path:
        """Download the episode audio into its asset directory.

        Raises:
            NotFoundError: If the episode does not exist or has no audio URL
            StreamError: If the download fails
            OperationCancelledError: If ``cancel_token`` is triggered
        """
        episode = self._require_episode(episode_id)
        if not episode.url:
            raise NotFoundError(f"Episode {episode_id} has no audio URL")

        with self._locks.hold(episode_id):
            out_path = self.store.asset_path(episode_id, config_constants.AUDIO_ASSET_NAME)
            logger.info("Downloading %s to %s", episode.title, out_path)
            nbytes = download_to_file(
                episode.url,
                out_path,
                user_agent=self.user_agent,
                timeout=self.timeout,
                on_progress=on_progress,
                cancel_token=cancel_token,
            )
            self.store.update_episode(episode_id, {"is_downloaded": True})
            logger.info("Downloaded %s (%d bytes)", episode.title, nbytes)
            return out_path

    def get_episode_audio_path(self, episode_id: str) -> Optional[Path]:
        """Asset path of the downloaded audio, or None when not downloaded.

        The file itself is not checked.
        """
        episode = self.store.get_episode(episode_id)
        if episode is None or not episode.is_downloaded:
            return None
        return self.store.asset_path(episode_id, config_constants.AUDIO_ASSET_NAME)

    # ============================================================================
    # Transcription
    # ============================================================================

    def get_episode_transcript_status(self, episode_id: str) -> bool:
        """True when the episode is flagged as having a transcript."""
        episode = self.store.get_episode(episode_id)
        return episode is not None and episode.has_transcript

    def transcribe_episode(
        self,
        episode_id: str,
        on_progress: Optional[ProgressCallback] = None,
        on_download_progress: Optional[DownloadProgressCallback] = None,
        force: bool = False,
        cancel_token: Optional[CancellationToken] = None,
    ) -> TranscriptionStatus:
        """Transcribe an episode, downloading its audio first when needed.

        Without ``force`` a completed record, or a processing record whose run is
        still active in this process, is returned unchanged. A processing record
        left behind by an interrupted run is treated as stale and re-run. A forced
        run replaces any record with a new one.

        Raises:
            NotFoundError: If the episode does not exist or has no audio URL
            StreamError: If the audio download fails (no transcription record is
                         written for it)
            PodcastChatError: Transcription failure, after the failed status has
                              been persisted
        """
        with self._locks.hold(episode_id):
            episode = self._require_episode(episode_id)
            if not force:
                existing = self.store.get_transcription(episode_id)
                if existing is not None and (
                    existing.status == "completed"
                    or (existing.status == "processing" and episode_id in self._active_runs)
                ):
                    logger.info(
                        "Episode %s already has a %s transcription", episode_id, existing.status
                    )
                    return existing
                if existing is not None and existing.status == "processing":
                    logger.warning(
                        "Re-running stale transcription %s for episode %s", existing.id, episode_id
                    )

            self._active_runs.add(episode_id)
            try:
                return self._run_transcription(
                    episode, on_progress, on_download_progress, cancel_token
                )
            finally:
                self._active_runs.discard(episode_id)

    def _run_transcription(
        self,
        episode: Episode,
        on_progress: Optional[ProgressCallback],
        on_download_progress: Optional[DownloadProgressCallback],
        cancel_token: Optional[CancellationToken],
    ) -> TranscriptionStatus:
        episode_id = episode.id
        if episode.is_downloaded:
            audio_path = self.store.asset_path(episode_id, config_constants.AUDIO_ASSET_NAME)
        else:
            audio_path = self.download_episode(
                episode_id, on_progress=on_download_progress, cancel_token=cancel_token
            )
            episode = self._require_episode(episode_id)

        try:
            status = self.engine.transcribe_episode(
                episode,
                audio_path,
                on_progress=on_progress,
                cancel_token=cancel_token,
                duration=episode.duration,
            )
        except BaseException:
            # The failed record replaced any earlier transcript
            if episode.has_transcript:
                self.store.update_episode(episode_id, {"has_transcript": False})
            raise

        self.store.update_episode(episode_id, {"has_transcript": True})
        return status

    # ============================================================================
    # Chat
    # ============================================================================

    def chat_with_episode(
        self,
        episode_id: str,
        message: str,
        cancel_token: Optional[CancellationToken] = None,
    ) -> Iterator[str]:
        """Return the streamed reply to ``message`` about a transcribed episode.

        Preconditions are checked before this returns, so no model call is made
        for an episode without a completed transcript.

        Raises:
            NotFoundError: If the episode does not exist
            PreconditionError: If the episode has no completed transcription
        """
        episode = self._require_episode(episode_id)
        if not episode.has_transcript:
            raise PreconditionError(
                f"Episode {episode_id} has not been transcribed",
                suggestion="Transcribe the episode before chatting with it",
            )
        status = self.store.get_transcription(episode_id)
        if status is None or status.status != "completed" or status.transcription is None:
            raise PreconditionError(
                f"Episode {episode_id} has no completed transcription",
                suggestion="Re-run transcription with force=True",
            )
        return self.chat.stream_reply(
            episode_id, status.transcription, message, cancel_token=cancel_token
        )
