"""A Raft consensus peer that talks to its peers over :mod:`distkit.network`.

Each peer exposes two RPC handlers, ``Raft.request_vote`` and
``Raft.append_entries``, and delivers committed log entries, in order, as
:class:`ApplyCommand` items on the queue it was given.
"""

from __future__ import annotations

import enum
import queue
import random
import threading
from dataclasses import dataclass
from itertools import takewhile
from typing import Any, Sequence

from distkit.network import ClientEnd

_ELECTION_TIMEOUT_MIN_MS = 300
_ELECTION_TIMEOUT_SPREAD_MS = 300
_HEARTBEAT_INTERVAL = 0.1
_VOTE_POLL_INTERVAL = 0.05
_NO_VOTE = -1


class Role(enum.Enum):
    FOLLOWER = 1
    LEADER = 2
    CANDIDATE = 3


@dataclass(frozen=True)
class ApplyCommand:
    """A committed command, delivered to the service at its log index."""

    index: int
    command: Any


@dataclass(frozen=True)
class LogEntry:
    term: int
    command: Any


@dataclass(frozen=True)
class RequestVoteArgs:
    term: int
    candidate_id: int
    last_log_index: int
    last_log_term: int


@dataclass(frozen=True)
class RequestVoteReply:
    term: int
    vote_granted: bool


@dataclass(frozen=True)
class AppendEntriesArgs:
    term: int
    leader_id: int
    prev_log_index: int
    prev_log_term: int
    entries: tuple[LogEntry, ...]
    leader_commit: int


@dataclass(frozen=True)
class AppendEntriesReply:
    term: int
    success: bool


class Raft:
    """A single Raft peer.

    ``peers`` holds one client endpoint per peer, all peers listing them in
    the same order; ``peers[me]`` is this peer's own. Construction returns at
    once; elections, heartbeats and delivery run on background threads.
    """

    def __init__(self, peers: Sequence[ClientEnd], me: int, apply_queue: "queue.Queue[ApplyCommand]") -> None:
        self._peers = list(peers)
        self._me = me
        self._apply_queue = apply_queue

        self._lock = threading.Lock()
        self._committed = threading.Condition(self._lock)
        self._wake = threading.Event()
        self._stopped = threading.Event()

        self._term = 0
        self._voted_for = _NO_VOTE
        self._role = Role.FOLLOWER
        self._log: list[LogEntry] = [LogEntry(0, None)]
        self._commit_index = 0
        self._last_applied = 0
        self._next_index: list[int] = []
        self._match_index: list[int] = []

        self._election_timeout = (
            random.randrange(_ELECTION_TIMEOUT_SPREAD_MS) + _ELECTION_TIMEOUT_MIN_MS
        ) / 1000

        threading.Thread(target=self._apply_loop, daemon=True).start()
        threading.Thread(target=self._main_loop, daemon=True).start()

    @property
    def _majority(self) -> int:
        return len(self._peers) // 2

    def get_state(self) -> tuple[int, int, bool]:
        """Return this peer's index, its current term and whether it believes it leads."""
        with self._lock:
            return self._me, self._term, self._role is Role.LEADER

    def put_command(self, command: Any) -> tuple[int, int, bool]:
        """Start agreement on a new command.

        Returns the index the command will have if it is ever committed, the
        current term and whether this peer is the leader. A peer that is not
        the leader appends nothing and returns index -1.
        """
        with self._lock:
            if self._role is not Role.LEADER:
                return -1, self._term, False
            self._log.append(LogEntry(self._term, command))
            return len(self._log) - 1, self._term, True

    def stop(self) -> None:
        """Stop starting elections and sending heartbeats."""
        self._stopped.set()
        self._wake.set()

    # RPC handlers

    def request_vote(self, args: RequestVoteArgs) -> RequestVoteReply:
        with self._lock:
            if args.term < self._term:
                return RequestVoteReply(self._term, False)
            reply_term = self._term
            if args.term > self._term:
                self._term = args.term
                self._voted_for = _NO_VOTE
                self._role = Role.FOLLOWER

            last_term = self._log[-1].term
            up_to_date = args.last_log_term > last_term or (
                args.last_log_term == last_term and args.last_log_index + 1 >= len(self._log)
            )
            if self._voted_for in (_NO_VOTE, args.candidate_id) and up_to_date:
                self._voted_for = args.candidate_id
                return RequestVoteReply(self._term, True)
            return RequestVoteReply(reply_term, False)

    def append_entries(self, args: AppendEntriesArgs) -> AppendEntriesReply:
        with self._lock:
            reply_term = self._term
            if args.term < self._term:
                return AppendEntriesReply(reply_term, False)

            self._wake.set()
            if args.term > self._term:
                self._term = args.term
                self._role = Role.FOLLOWER
            elif self._role is Role.CANDIDATE:
                self._role = Role.FOLLOWER

            prev = args.prev_log_index
            if prev >= len(self._log) or self._log[prev].term != args.prev_log_term:
                return AppendEntriesReply(reply_term, False)

            start = prev + 1
            matched = sum(
                1
                for _ in takewhile(
                    lambda pair: pair[0].term == pair[1].term,
                    zip(args.entries, self._log[start:]),
                )
            )
            del self._log[start + matched:]
            self._log.extend(args.entries[matched:])

            if self._commit_index < args.leader_commit:
                self._commit_index = min(len(self._log) - 1, args.leader_commit)
                self._committed.notify_all()
            return AppendEntriesReply(reply_term, True)

    # Background work

    def _apply_loop(self) -> None:
        while True:
            with self._committed:
                while self._last_applied >= self._commit_index:
                    self._committed.wait()
                first = self._last_applied + 1
                batch = [
                    ApplyCommand(index, entry.command)
                    for index, entry in enumerate(
                        self._log[first:self._commit_index + 1], start=first
                    )
                ]
                self._last_applied = self._commit_index
            for item in batch:
                self._apply_queue.put(item)

    def _main_loop(self) -> None:
        while not self._stopped.is_set():
            with self._lock:
                leading = self._role is Role.LEADER
            if leading:
                self._broadcast_append_entries()
                self._stopped.wait(_HEARTBEAT_INTERVAL)
                continue
            if self._wake.wait(self._election_timeout):
                self._wake.clear()
                continue
            if self._stopped.is_set():
                break
            threading.Thread(target=self._run_election, daemon=True).start()

    def _run_election(self) -> None:
        with self._lock:
            if self._stopped.is_set():
                return
            self._role = Role.CANDIDATE
            self._term += 1
            self._voted_for = self._me
            term = self._term
            args = RequestVoteArgs(
                term=term,
                candidate_id=self._me,
                last_log_index=len(self._log),
                last_log_term=self._log[-1].term,
            )

        replies: queue.Queue[RequestVoteReply] = queue.Queue()

        def ask(peer: ClientEnd) -> None:
            reply = peer.call("Raft.request_vote", args)
            if reply is not None:
                replies.put(reply)

        for index, peer in enumerate(self._peers):
            if index != self._me:
                threading.Thread(target=ask, args=(peer,), daemon=True).start()

        votes = 1
        while True:
            with self._lock:
                if self._term != term or self._role is not Role.CANDIDATE or self._stopped.is_set():
                    return
            try:
                reply = replies.get(timeout=_VOTE_POLL_INTERVAL)
            except queue.Empty:
                continue
            if reply.term > term:
                with self._lock:
                    if reply.term > self._term:
                        self._term = reply.term
                        self._role = Role.FOLLOWER
                        self._voted_for = _NO_VOTE
                return
            if reply.vote_granted:
                votes += 1
                if votes > self._majority:
                    with self._lock:
                        if self._term == term and self._role is Role.CANDIDATE:
                            self._become_leader()
                    return

    def _become_leader(self) -> None:
        count = len(self._peers)
        self._next_index = [len(self._log)] * count
        self._match_index = [0] * count
        self._role = Role.LEADER
        self._wake.set()

    def _broadcast_append_entries(self) -> None:
        for index, peer in enumerate(self._peers):
            if index == self._me:
                continue
            with self._lock:
                if self._role is not Role.LEADER:
                    return
                next_index = self._next_index[index]
                prev_index = next_index - 1 if next_index > 0 else 0
                entries = tuple(self._log[next_index:])
                args = AppendEntriesArgs(
                    term=self._term,
                    leader_id=self._me,
                    prev_log_index=prev_index,
                    prev_log_term=self._log[prev_index].term,
                    entries=entries,
                    leader_commit=self._commit_index,
                )
            threading.Thread(
                target=self._send_append_entries,
                args=(index, peer, args, not entries),
                daemon=True,
            ).start()

    def _send_append_entries(
        self, server: int, peer: ClientEnd, args: AppendEntriesArgs, heartbeat: bool
    ) -> None:
        reply = peer.call("Raft.append_entries", args)
        if reply is None:
            return
        with self._lock:
            if self._role is not Role.LEADER or self._term != args.term:
                return
            if reply.success:
                self._next_index[server] = args.prev_log_index + len(args.entries) + 1
                self._match_index[server] = self._next_index[server] - 1
            elif self._next_index[server] > 1 and not heartbeat:
                self._next_index[server] -= 1

            # Only entries from the current term are committed by counting replicas.
            for entry_index in range(self._commit_index + 1, len(self._log)):
                if self._log[entry_index].term != self._term:
                    continue
                replicas = 1 + sum(
                    1
                    for peer_index, matched in enumerate(self._match_index)
                    if peer_index != self._me and matched >= entry_index
                )
                if replicas > self._majority:
                    self._commit_index = entry_index
                    self._committed.notify_all()
                    break