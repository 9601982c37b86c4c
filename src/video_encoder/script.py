"""Emit a self-contained shell invocation per job.

The script binds exactly four variables (``INPUT``, ``OUTPUT``, ``ARGS``,
``PRESET``) followed by the fixed check-then-transcode protocol. It uses
extended attributes for fingerprints, with the same key names and
digests as ``XattrStore`` and ``executor.run_job``.
"""

import shlex

from .fingerprint import ARGS_HASH_KEY, INPUT_HASH_KEY, SELF_HASH_KEY, SELF_STAMP_KEY
from .models import Job

SCRIPT_PREFIX = "#!/bin/sh\nset -u\n"

# Expects INPUT, OUTPUT, ARGS and PRESET to be set. ARGS is word-split on purpose.
SCRIPT_PROTOCOL = """
if [ ! -e "$INPUT" ]; then
    echo "Input not found: $INPUT" >&2
    exit 1
fi

if [ ! -e "$OUTPUT" ]; then
    mkdir -p "$(dirname "$OUTPUT")" || exit 1
    touch "$OUTPUT" || exit 1
fi

STAMP=$(stat -c '%s:%.9Y' "$INPUT")
INPUT_SHA=""
if [ "$(getfattr --only-values -n {self_stamp} "$INPUT" 2>/dev/null)" = "$STAMP" ]; then
    INPUT_SHA=$(getfattr --only-values -n {self_hash} "$INPUT" 2>/dev/null)
fi
if [ -z "$INPUT_SHA" ]; then
    INPUT_SHA=$(sha256sum "$INPUT" | cut -d ' ' -f 1) || exit 1
    setfattr -n {self_hash} -v "$INPUT_SHA" "$INPUT" 2>/dev/null
    setfattr -n {self_stamp} -v "$STAMP" "$INPUT" 2>/dev/null
fi

ARGS_SHA=$(printf '%s %s' "$PRESET" "$ARGS" | sha256sum | cut -d ' ' -f 1)

STORED_INPUT_SHA=$(getfattr --only-values -n {input_hash} "$OUTPUT" 2>/dev/null)
STORED_ARGS_SHA=$(getfattr --only-values -n {args_hash} "$OUTPUT" 2>/dev/null)
if [ "$STORED_ARGS_SHA" = "$ARGS_SHA" ] && [ "$STORED_INPUT_SHA" = "$INPUT_SHA" ]; then
    echo "Up to date: $OUTPUT"
    exit 0
fi

rm -f "$OUTPUT"
{executable} -o "$OUTPUT" -i "$INPUT" --preset "$PRESET" $ARGS || exit 1

setfattr -n {input_hash} -v "$INPUT_SHA" "$OUTPUT"
setfattr -n {args_hash} -v "$ARGS_SHA" "$OUTPUT"
"""


def build_invocation(
    job: Job,
    preset: str,
    executable: str = "HandBrakeCLI",
    namespace: str = "user.videoencoder",
) -> str:
    """Return the shell script that brings ``job.output`` up to date."""
    bindings = "\n".join(
        [
            f"INPUT={shlex.quote(job.input.as_posix())}",
            f"OUTPUT={shlex.quote(job.output.as_posix())}",
            f"ARGS={shlex.quote(job.arguments)}",
            f"PRESET={shlex.quote(preset)}",
        ]
    )
    protocol = SCRIPT_PROTOCOL.format(
        executable=shlex.quote(executable),
        input_hash=shlex.quote(f"{namespace}.{INPUT_HASH_KEY}"),
        args_hash=shlex.quote(f"{namespace}.{ARGS_HASH_KEY}"),
        self_hash=shlex.quote(f"{namespace}.{SELF_HASH_KEY}"),
        self_stamp=shlex.quote(f"{namespace}.{SELF_STAMP_KEY}"),
    )
    return SCRIPT_PREFIX + bindings + "\n" + protocol
