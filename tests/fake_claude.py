"""
Stand-in for the claude CLI used by the process tests.

Reads stdin to EOF, records its invocation to $FAKE_CLAUDE_LOG (one JSON
object per run), then plays the scenario named by $FAKE_CLAUDE_SCENARIO.
"""
import json
import os
import sys
import time


def emit(obj):
    print(json.dumps(obj), flush=True)


def main():
    argv = sys.argv[1:]
    prompt = sys.stdin.read()

    log_path = os.environ.get("FAKE_CLAUDE_LOG")
    if log_path:
        with open(log_path, "a") as f:
            f.write(json.dumps({"argv": argv, "stdin": prompt, "cwd": os.getcwd()}) + "\n")

    session_id = "sess-1"
    if "--resume" in argv:
        session_id = argv[argv.index("--resume") + 1]

    scenario = os.environ.get("FAKE_CLAUDE_SCENARIO", "chat")

    emit({"type": "system", "subtype": "init", "session_id": session_id,
          "model": "claude-test", "tools": ["Read", "Edit"]})

    if scenario == "hang":
        time.sleep(60)
        return 0

    if scenario == "crash":
        print("fatal: something broke", file=sys.stderr, flush=True)
        return 3

    if scenario == "flood":
        # Oversized lines on both pipes, then more output than a pipe buffer holds
        print("e" * 5000, file=sys.stderr, flush=True)
        print("after the long line", file=sys.stderr, flush=True)
        print(json.dumps({"type": "system", "subtype": "status", "pad": "x" * 5000}), flush=True)
        for _ in range(2000):
            emit({"type": "stream_event", "event": {"type": "content_block_delta",
                                                    "delta": {"type": "text_delta", "text": "y" * 100}}})
        emit({"type": "result", "total_cost_usd": 0.02, "duration_ms": 9, "usage": {}})
        return 0

    if scenario == "error":
        emit({"type": "result", "is_error": True, "result": "boom",
              "total_cost_usd": 0.0, "duration_ms": 5, "usage": {}})
        return 1

    print("this is not json", flush=True)
    emit({"type": "stream_event", "event": {"type": "content_block_delta",
                                            "delta": {"type": "text_delta", "text": "He"}}})
    emit({"type": "stream_event", "event": {"type": "content_block_delta",
                                            "delta": {"type": "text_delta", "text": "llo"}}})
    emit({"type": "stream_event", "event": {"type": "content_block_stop"}})
    emit({"type": "assistant", "message": {"content": [
        {"type": "text", "text": "Hello"},
        {"type": "tool_use", "name": "Read", "id": "tu-1", "input": {"file_path": "/tmp/x"}},
    ]}})
    emit({"type": "tool_result", "tool": "Read", "tool_use_id": "tu-1", "content": "file body"})
    emit({"type": "result", "total_cost_usd": 0.01, "duration_ms": 500,
          "usage": {"input_tokens": 100, "cache_read_input_tokens": 50, "output_tokens": 20}})
    return 0


if __name__ == "__main__":
    sys.exit(main())
