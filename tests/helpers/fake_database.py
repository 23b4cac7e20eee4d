"""Recording stand-in for the calibration database collaborator."""

import base64
import struct

from calibtree.pipeline.database import ResultSet


class FakeDatabase:
    """Answers queries from canned responses and records every call.

    Responses are matched in registration order: the first one whose marker
    is a substring of the query (and whose params, if given, are equal)
    wins. Unmatched queries return an empty result.
    """

    def __init__(self, connected=True):
        self.connected = connected
        self.responses = []
        self.calls = []
        self.is_connected_calls = 0

    def respond(self, marker, rows=(), error=None, params=None):
        self.responses.append((marker, list(rows), error, params))
        return self

    def is_connected(self):
        self.is_connected_calls += 1
        return self.connected

    def execute(self, query, params=()):
        params = list(params)
        self.calls.append((query, params))
        for marker, rows, error, expected in self.responses:
            if marker in query and (expected is None or expected == params):
                return ResultSet(rows, error)
        return ResultSet([])

    def queries_matching(self, marker):
        return [call for call in self.calls if marker in call[0]]


def strip_word(noise_tenths, pedestal):
    """32-bit strip word with the given noise (tenths) and pedestal."""
    return (pedestal << 22) | (noise_tenths << 13)


def make_blob(words):
    """Base64 blob of little-endian 32-bit words, as stored in the database."""
    return base64.b64encode(b"".join(struct.pack("<I", w) for w in words))
