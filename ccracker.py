#!/usr/bin/env python3
import argparse
import io
import logging
import sys
from contextlib import ExitStack
from enum import Enum
from typing import BinaryIO, Dict, List, Optional

from caesar_util import (StreamOpenError, ascii_dictionary_attack, ascii_frequency_analysis_attack,
                         decrypt_with_best_keys, find_keys, iter_stream_bytes, open_binary)

"""
Crack an ASCII Caesar cipher

Every byte of the plaintext was shifted by the same unknown key, modulo 128.

Try all 128 keys at once and report the one(s) most likely to decipher the ciphertext, either by counting the
dictionary words each key produces or by comparing each key's character frequencies against English.

The reported key is the one that deciphers: feed it straight to ccipher to get the plaintext back.
"""


class Attack(Enum):
    DICTIONARY = 0
    FREQUENCY = 1


def crack(ciphertext: BinaryIO, attack: Attack, wordlist: Optional[BinaryIO] = None) -> Dict[int, int]:
    """
    >>> scores = crack(open("data/attack_at_dawn.txt", "rb"), Attack.DICTIONARY, open("data/popular.txt", "rb"))
    >>> scores[27], find_keys(scores)
    (3, [27])
    >>> crack(open("data/ciphertext.txt", "rb"), Attack.FREQUENCY)
    {27: 1}
    """
    if attack is Attack.DICTIONARY:
        assert wordlist is not None, "A dictionary attack needs a word list"
        return ascii_dictionary_attack(ciphertext, wordlist)
    else:
        assert attack is Attack.FREQUENCY, "What the hell happened here?"
        return ascii_frequency_analysis_attack(ciphertext)


def print_probable_keys(scores: Dict[int, int]) -> None:
    """
    >>> print_probable_keys({0: 1, 96: 1, 4: 0})
    most probable key(s): 0 96
    >>> print_probable_keys({})
    no viable key found
    """
    keys = find_keys(scores)
    if not keys:
        print("no viable key found")
    else:
        print("most probable key(s): " + " ".join(str(k) for k in keys))


def print_error_and_exit(msg: str) -> None:
    print(f"error: {msg}", file=sys.stderr)
    sys.exit(1)


def main(argv: Optional[List[str]] = None) -> None:
    """
    >>> main(["-c", "data/attack_at_dawn.txt", "-d", "data/popular.txt"])
    most probable key(s): 27
    >>> main(["--ciphertext", "data/ciphertext.txt", "--freq-attack"])
    most probable key(s): 27
    >>> main(["-c", "data/ciphertext.txt"])
    most probable key(s): 27
    >>> main(["-c", "data/attack_at_dawn.txt", "-d", "data/popular.txt", "-p"])
    most probable key(s): 27
    ScoredKey(key=27, score=3, plaintext=b'attack at dawn')
    >>> main(["-c", "data/empty.txt"])
    no viable key found
    >>> main(["-c", "data/attack_at_dawn.txt", "-d", "data/empty.txt"])
    no viable key found

    >>> main(["-c", "data/no_such_file.txt"])
    Traceback (most recent call last):
    SystemExit: 1
    >>> main(["-c", "data/attack_at_dawn.txt", "-d", "data/no_such_file.txt"])
    Traceback (most recent call last):
    SystemExit: 1
    >>> main(["-c", "data/attack_at_dawn.txt", "-d", "data/popular.txt", "-f"])
    Traceback (most recent call last):
    SystemExit: 2
    """
    parser = argparse.ArgumentParser(prog="ccracker",
                                     description="find the key(s) with the highest probability of deciphering the "
                                                 "ciphertext")
    parser.add_argument("-c", "--ciphertext", metavar="FILE",
                        help="file containing ciphertext (default: read stdin)")
    attacks = parser.add_mutually_exclusive_group()
    attacks.add_argument("-d", "--dict-attack", metavar="DICT_FILE",
                         help="perform a dictionary attack using a newline separated list of lowercase words")
    attacks.add_argument("-f", "--freq-attack", action="store_true",
                         help="perform a frequency analysis attack (the default)")
    parser.add_argument("-p", "--show-plaintext", action="store_true",
                        help="also print the ciphertext deciphered with each probable key")
    parser.add_argument("-v", "--verbose", action="store_true", help="log debugging output to stderr")
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.WARNING,
                        format="%(name)s: %(message)s")

    # Only perform a dictionary attack if explicitly asked for one
    attack = Attack.DICTIONARY if args.dict_attack else Attack.FREQUENCY

    with ExitStack() as stack:
        try:
            if args.ciphertext:
                ciphertext = stack.enter_context(open_binary(args.ciphertext, "rb", "ciphertext file"))
            else:
                ciphertext = sys.stdin.buffer
            wordlist = None
            if attack is Attack.DICTIONARY:
                wordlist = stack.enter_context(open_binary(args.dict_attack, "rb", "dictionary file"))
        except StreamOpenError as e:
            print_error_and_exit(str(e))

        if args.show_plaintext:
            # The ciphertext gets read twice, once to crack and once to decipher
            data = bytes(iter_stream_bytes(ciphertext))
            scores = crack(io.BytesIO(data), attack, wordlist)
            print_probable_keys(scores)
            for result in decrypt_with_best_keys(scores, data):
                print(result)
        else:
            print_probable_keys(crack(ciphertext, attack, wordlist))


if __name__ == "__main__":
    main()
