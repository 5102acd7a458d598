"""Identifier normalization shared by every join in the pipeline."""


def short_key(header: str) -> str:
    """Reduce a sequence header to its join key.

    The key is the leading whitespace-delimited token of the header, so
    ``"sp|P01|DEF1_HUMAN Defensin-1 OS=Homo sapiens"`` becomes
    ``"sp|P01|DEF1_HUMAN"``. The function is pure and idempotent: a key
    passed back in is returned unchanged. A blank header yields ``""``.
    """
    tokens = header.split(None, 1)
    return tokens[0] if tokens else ""
