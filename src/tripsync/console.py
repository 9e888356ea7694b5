from __future__ import annotations

import asyncio

from loguru import logger

from tripsync.chat_client import ChatClient, describe_failure
from tripsync.commands.router import CommandRouter
from tripsync.errors import NotFound, SyncFailure, TripSyncError, Unauthorized
from tripsync.indicator import WaitIndicator
from tripsync.services.session_controller import SessionController
from tripsync.sync_agent import SyncOutcome


class ChatConsole:
    _LINE_PREFIX = "assistant> "
    _USER_PROMPT = "you> "

    def __init__(self, client: ChatClient):
        self._client = client
        self._session_controller = SessionController(line_prefix=self._LINE_PREFIX)
        self._command_router = CommandRouter(
            on_help=self._on_help,
            on_session=self._handle_session_command,
            on_sync=self._handle_sync_command,
            on_logout=self._handle_logout_command,
            on_unknown=self._on_unknown_command,
        )
        self._logged_out = False

    @property
    def logged_out(self) -> bool:
        return self._logged_out

    async def run(self) -> None:
        while not self._logged_out:
            try:
                user_input = await asyncio.to_thread(input, self._USER_PROMPT)
            except (EOFError, KeyboardInterrupt):
                break

            trimmed = user_input.strip()
            if trimmed in ("exit", "quit"):
                break
            if not trimmed:
                continue

            try:
                await self.handle(trimmed)
            except Unauthorized as ex:
                print(f"{self._LINE_PREFIX}Not authorized ({ex.message}). Check TRIPSYNC_API_TOKEN.")
            except TripSyncError as ex:
                print(f"{self._LINE_PREFIX}{describe_failure(ex)}")

    async def handle(self, user_input: str) -> None:
        if await self._command_router.try_handle(user_input):
            return
        await self._send(user_input)

    async def _send(self, text: str) -> None:
        print()
        indicator = WaitIndicator(prefix=self._LINE_PREFIX)
        indicator.start()

        async def on_delta(chunk: str) -> None:
            indicator.stop()
            print(chunk, end="", flush=True)

        try:
            result = await self._client.send(text, on_delta=on_delta)
        finally:
            indicator.stop()
        print("\n")

        if result.error is not None:
            print(f"{self._LINE_PREFIX}No reply this time ({result.error.message}). Your message was kept.")
        self._report_sync(result.sync)

    def _report_sync(self, outcome: SyncOutcome) -> None:
        if outcome.ok:
            return
        print(
            f"{self._LINE_PREFIX}Could not save to the server after {outcome.attempts} attempt(s) "
            f"({describe_failure(outcome.error)}). Saved locally; use /sync to retry."
        )

    async def _on_help(self) -> None:
        print(f"{self._LINE_PREFIX}Available commands:")
        print(f"{self._LINE_PREFIX}- /help")
        print(f"{self._LINE_PREFIX}- /session")
        print(f"{self._LINE_PREFIX}- /session list")
        print(f"{self._LINE_PREFIX}- /session new [title]")
        print(f"{self._LINE_PREFIX}- /session switch <id>")
        print(f"{self._LINE_PREFIX}- /session delete <id>")
        print(f"{self._LINE_PREFIX}- /sync")
        print(f"{self._LINE_PREFIX}- /logout")
        print(f"{self._LINE_PREFIX}- exit")

    def _on_unknown_command(self, trimmed: str) -> None:
        print(f"{self._LINE_PREFIX}Unknown local command: {trimmed}")

    async def _handle_session_command(self, command: str) -> None:
        parts = command.split()
        if len(parts) == 1:
            cursor = self._client.cursor
            print(
                self._session_controller.format_current(
                    self._client.session,
                    message_count=len(self._client.messages),
                    watermark=cursor.watermark if cursor else 0,
                )
            )
            return

        action = parts[1]
        argument = command.partition(action)[2].strip()

        if action == "list":
            listing = await self._client.list_sessions()
            if listing.from_cache:
                print(f"{self._LINE_PREFIX}Server unreachable; showing cached sessions.")
            if not listing.sessions:
                print(f"{self._LINE_PREFIX}No sessions found.")
                return
            active_id = self._client.session.id if self._client.session else None
            for session in listing.sessions:
                print(self._session_controller.format_session_list_entry(session, active_session_id=active_id))
            return

        if action == "new":
            session = await self._client.new_session(argument or None)
            print(
                f"{self._LINE_PREFIX}Started new session: {session.title} "
                f"[{self._session_controller.short_id(session.id)}] (id={session.id})"
            )
            return

        if action == "switch" and argument:
            try:
                view = await self._client.switch_session(await self._resolve_session_id(argument))
            except NotFound:
                print(f"{self._LINE_PREFIX}Session not found: {argument}")
                return
            except SyncFailure as ex:
                print(f"{self._LINE_PREFIX}Server unreachable and session not cached: {ex.message}")
                return
            source = " from the local cache" if view.from_cache else ""
            print(
                f"{self._LINE_PREFIX}Switched to {view.session.title} "
                f"[{self._session_controller.short_id(view.session.id)}]{source} ({len(view.messages)} messages)"
            )
            for message in view.messages[-6:]:
                speaker = self._LINE_PREFIX if message.role == "assistant" else self._USER_PROMPT
                print(f"{speaker}{message.content}")
            return

        if action == "delete" and argument:
            session_id = await self._resolve_session_id(argument)
            await self._client.delete_session(session_id)
            print(f"{self._LINE_PREFIX}Deleted session {session_id}")
            return

        print(
            f"{self._LINE_PREFIX}Usage: /session | /session list | /session new [title] | "
            "/session switch <id> | /session delete <id>"
        )

    async def _resolve_session_id(self, target: str) -> str:
        """Expand a short id prefix to a full id when exactly one listed session matches."""
        listing = await self._client.list_sessions()
        matches = [s.id for s in listing.sessions if s.id.startswith(target)]
        if len(matches) == 1:
            return matches[0]
        return target

    async def _handle_sync_command(self) -> None:
        outcome = await self._client.retry_sync()
        if outcome.status == "noop":
            print(f"{self._LINE_PREFIX}Nothing to sync.")
        elif outcome.ok:
            print(
                f"{self._LINE_PREFIX}Synced {outcome.sent_count} message(s); "
                f"{outcome.saved_count} new on the server, {outcome.total_count} total."
            )
        else:
            self._report_sync(outcome)

    async def _handle_logout_command(self) -> None:
        self._client.logout()
        self._logged_out = True
        logger.info("Console session ended by /logout")
        print(f"{self._LINE_PREFIX}Logged out. Local chat history cleared.")
