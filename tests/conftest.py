import json
import os
from types import SimpleNamespace

import pytest
from openai.types.beta.threads.required_action_function_tool_call import (
    Function,
    RequiredActionFunctionToolCall,
)

from grant_eligibility.config import Settings
from grant_eligibility.data.file_utils import DownloadedFile

GRANT_ARGUMENTS = {
    "filename": "grant.pdf",
    "eligibility": {
        "prime_applicant_types": ["City government"],
        "sub_applicant_types": [],
        "qualifiers": ["Must be US-based"],
        "disqualifiers": ["For-profit entities"],
    },
}


def make_tool_call(arguments=None, name="checkEligibility", call_id="call_1"):
    if arguments is None:
        arguments = GRANT_ARGUMENTS
    if not isinstance(arguments, str):
        arguments = json.dumps(arguments)
    return RequiredActionFunctionToolCall(
        id=call_id,
        type="function",
        function=Function(name=name, arguments=arguments),
    )


def make_run(status, tool_calls=None, action_type="submit_tool_outputs", error_code=None, run_id="run_1"):
    required_action = None
    if tool_calls is not None:
        required_action = SimpleNamespace(
            type=action_type,
            submit_tool_outputs=SimpleNamespace(tool_calls=tool_calls),
        )
    last_error = None
    if error_code:
        last_error = SimpleNamespace(code=error_code, message=f"run failed: {error_code}")
    return SimpleNamespace(id=run_id, status=status, required_action=required_action, last_error=last_error)


class FakeProvider:
    """Records every call; get_run walks through `runs`, repeating the last one."""

    def __init__(self, runs=None, upload_error=None, assistant_error=None, thread_error=None):
        if runs is None:
            runs = [make_run("in_progress"), make_run("requires_action", [make_tool_call()])]
        self.runs = list(runs)
        self.upload_error = upload_error
        self.assistant_error = assistant_error
        self.thread_error = thread_error
        self.calls = []
        self.uploaded = []
        self.polls = 0
        self._ids = 0

    def _next_id(self, prefix):
        self._ids += 1
        return f"{prefix}_{self._ids}"

    def count(self, name):
        return sum(1 for call in self.calls if call[0] == name)

    def index(self, name):
        return [call[0] for call in self.calls].index(name)

    async def upload_file(self, path, filename):
        self.calls.append(("upload_file", filename))
        with open(path, "rb") as f:
            self.uploaded.append((path, filename, f.read()))
        if self.upload_error:
            raise self.upload_error
        return SimpleNamespace(id=self._next_id("file"))

    async def delete_file(self, file_id):
        self.calls.append(("delete_file", file_id))

    async def create_assistant(self, file_id):
        self.calls.append(("create_assistant", file_id))
        if self.assistant_error:
            raise self.assistant_error
        return SimpleNamespace(id=self._next_id("asst"))

    async def delete_assistant(self, assistant):
        self.calls.append(("delete_assistant", assistant.id))

    async def create_thread(self, filename):
        self.calls.append(("create_thread", filename))
        if self.thread_error:
            raise self.thread_error
        return SimpleNamespace(id=self._next_id("thread"))

    async def create_run(self, thread_id, assistant_id):
        self.calls.append(("create_run", thread_id, assistant_id))
        return make_run("queued")

    async def get_run(self, thread_id, run_id):
        self.calls.append(("get_run", thread_id, run_id))
        self.polls += 1
        if len(self.runs) > 1:
            return self.runs.pop(0)
        return self.runs[0]

    async def cancel_run(self, thread_id, run_id):
        self.calls.append(("cancel_run", thread_id, run_id))


class FakeRedis:
    """Just enough of redis.asyncio.Redis for the sliding window limiter.

    register_script returns a callable that does in Python what the Lua
    script does on the server.
    """

    def __init__(self, error=None):
        self.sets = {}
        self.ttls = {}
        self.error = error
        self.scripts = []
        self.closed = False

    def register_script(self, script):
        self.scripts.append(script)

        async def _run(keys, args):
            if self.error:
                raise self.error
            key = keys[0]
            now, window, limit, member = float(args[0]), int(args[1]), int(args[2]), args[3]
            members = self.sets.setdefault(key, {})
            for m in [m for m, score in members.items() if score <= now - window]:
                del members[m]
            if len(members) < limit:
                members[member] = now
                self.ttls[key] = window
                return 1
            return 0

        return _run

    async def aclose(self):
        self.closed = True


@pytest.fixture
def settings(tmp_path):
    return Settings(
        openai_api_key="sk-test",
        poll_interval_seconds=0,
        run_timeout_seconds=5,
        scratch_dir=str(tmp_path),
    )


@pytest.fixture
def provider():
    return FakeProvider()


@pytest.fixture
def fake_download(monkeypatch, tmp_path):
    """Replace the network download with a local write; records requested URLs."""
    requested = []

    def _download(url, scratch_dir, filename=None, timeout=30.0):
        requested.append(url)
        path = os.path.join(scratch_dir, f"{len(requested)}_grant.pdf")
        with open(path, "wb") as f:
            f.write(b"%PDF-1.4 grant")
        return DownloadedFile(local_path=path, filename="grant.pdf")

    monkeypatch.setattr("grant_eligibility.eligibility_agent.executor.download_file", _download)
    return requested
