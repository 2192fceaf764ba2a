import logging
import string
from dataclasses import dataclass
from math import inf
from typing import BinaryIO, Dict, Iterator, List, Sequence, Set

log = logging.getLogger(__name__)

ASCII_ALPHABET_SIZE = 128

_ALPHANUMERICS = frozenset((string.ascii_letters + string.digits).encode())
_WHITESPACE = frozenset(string.whitespace.encode())
_LOWERCASE = bytes(range(ASCII_ALPHABET_SIZE)).lower()
_NEWLINE = ord("\n")


def shift_byte(b: int, key: int) -> int:
    """
    Shift a single ASCII code by key, wrapping around the 128 character alphabet

    >>> shift_byte(ord("A"), 1)
    66
    >>> shift_byte(ord("~"), 5)
    3
    >>> shift_byte(ord("A"), -1) == ord("@")
    True
    """
    return (b + key) % ASCII_ALPHABET_SIZE


def caesar_cipher(data: bytes, key: int) -> bytes:
    """
    Shift every byte of data by key. Encrypting with key and then with -key gives back the input

    >>> caesar_cipher(b"Hello!", 3)
    b'Khoor$'
    >>> caesar_cipher(b"}~", 5)
    b'\\x02\\x03'
    >>> caesar_cipher(b"ABC", 128)
    b'ABC'
    >>> caesar_cipher(b"ABC", -1)
    b'@AB'
    >>> caesar_cipher(b"", 5)
    b''
    >>> caesar_cipher(caesar_cipher(b"attack at dawn", 101), 27)
    b'attack at dawn'
    >>> caesar_cipher(bytes(range(128)), 1) == bytes(range(1, 128)) + b"\\x00"
    True
    """
    res = []
    for b in data:
        res.append(shift_byte(b, key))
    return bytes(res)


def inverse_key(key: int) -> int:
    """
    Return the key that undoes a shift by key

    >>> inverse_key(101)
    27
    >>> inverse_key(-5)
    5
    >>> inverse_key(0)
    0
    """
    return -key % ASCII_ALPHABET_SIZE


def iter_stream_bytes(stream: BinaryIO, chunk_size: int = 4096) -> Iterator[int]:
    """
    Yield every byte of a binary stream. A read that fails is treated as the end of the stream, so a stream
    that breaks part way through still yields whatever it produced before breaking

    >>> import io
    >>> list(iter_stream_bytes(io.BytesIO(b"AB")))
    [65, 66]
    >>> list(iter_stream_bytes(io.BytesIO(b"")))
    []

    >>> closed = io.BytesIO(b"AB")
    >>> closed.close()
    >>> list(iter_stream_bytes(closed))
    []

    >>> class FaultyStream(io.BytesIO):
    ...     def read(self, size=-1):
    ...         if self.tell():
    ...             raise OSError("device went away")
    ...         return super().read(2)
    >>> bytes(iter_stream_bytes(FaultyStream(b"ABCD")))
    b'AB'
    """
    num_bytes = 0
    while True:
        try:
            chunk = stream.read(chunk_size)
        except (OSError, ValueError) as e:
            log.debug("Read failed after %d bytes, treating it as end of input: %s", num_bytes, e)
            return
        if not chunk:
            return
        num_bytes += len(chunk)
        yield from chunk


def load_wordlist(stream: BinaryIO) -> Set[bytes]:
    """
    Read a newline separated word list. Each line becomes one entry, with nothing but the newline stripped

    >>> import io
    >>> sorted(load_wordlist(io.BytesIO(b"at\\ndawn\\nattack")))
    [b'at', b'attack', b'dawn']
    >>> sorted(load_wordlist(io.BytesIO(b"Dawn \\n\\nat\\n")))
    [b'', b'Dawn ', b'at']
    >>> load_wordlist(io.BytesIO())
    set()
    """
    words: Set[bytes] = set()
    line = bytearray()
    for b in iter_stream_bytes(stream):
        if b == _NEWLINE:
            words.add(bytes(line))
            line.clear()
        else:
            line.append(b)
    if line:
        words.add(bytes(line))
    return words


class WordHitScores(Dict[int, int]):
    """
    Candidate key -> number of dictionary words produced by that key. Higher is better, keys with no hits are
    absent
    """
    def hit(self, key: int) -> None:
        self[key] = self.get(key, 0) + 1


class MinimumDistanceKeys(Dict[int, int]):
    """
    The candidate keys whose character distribution sits closest to English. Every key maps to 1, a key being
    present is all that matters
    """
    def tie(self, key: int) -> None:
        self[key] = 1

    def replace(self, key: int) -> None:
        self.clear()
        self[key] = 1


def ascii_dictionary_attack(ciphertext: BinaryIO, wordlist: BinaryIO) -> WordHitScores:
    """
    Score every candidate key by the number of dictionary words it produces when applied to the ciphertext

    Words are runs of alphanumerics, lowercased, and end at whitespace. Punctuation neither ends nor breaks a
    word, so "at.dawn" reads as "atdawn". The last word of the stream is scored even without whitespace after
    it. Since candidate words are lowercased, only lowercase dictionary entries can ever match.

    An empty or unreadable stream (ciphertext or word list) gives an empty result

    >>> import io
    >>> ciphertext = caesar_cipher(b"attack at dawn", 101)
    >>> ascii_dictionary_attack(io.BytesIO(ciphertext), io.BytesIO(b"attack\\nat\\ndawn\\n"))
    {27: 3}

    >>> ascii_dictionary_attack(io.BytesIO(b"at. dawn"), io.BytesIO(b"at\\ndawn\\n"))
    {0: 2}
    >>> ascii_dictionary_attack(io.BytesIO(b"at.dawn"), io.BytesIO(b"at\\ndawn\\n"))
    {}
    >>> ascii_dictionary_attack(io.BytesIO(b"ATTACK AT DAWN"), io.BytesIO(b"attack\\nat\\ndawn\\n"))
    {0: 3}
    >>> ascii_dictionary_attack(io.BytesIO(b"Attack"), io.BytesIO(b"Attack\\n"))
    {}

    Upper and lowercase letters are 32 apart, so a lone word scores under two keys
    >>> ascii_dictionary_attack(io.BytesIO(b"dawn"), io.BytesIO(b"dawn\\n"))
    {0: 1, 96: 1}

    >>> plaintext = open("data/plaintext.txt", "rb").read()
    >>> scores = ascii_dictionary_attack(io.BytesIO(caesar_cipher(plaintext, 101)), open("data/popular.txt", "rb"))
    >>> find_keys(scores)
    [27]
    >>> scores == ascii_dictionary_attack(open("data/ciphertext.txt", "rb"), open("data/popular.txt", "rb"))
    True

    >>> ascii_dictionary_attack(io.BytesIO(), io.BytesIO(b"attack\\n"))
    {}
    >>> ascii_dictionary_attack(io.BytesIO(ciphertext), io.BytesIO())
    {}
    >>> closed = io.BytesIO(b"attack\\n")
    >>> closed.close()
    >>> ascii_dictionary_attack(io.BytesIO(ciphertext), closed)
    {}
    >>> ascii_dictionary_attack(closed, io.BytesIO(b"attack\\n"))
    {}
    """
    dictionary = load_wordlist(wordlist)
    scores = WordHitScores()
    if not dictionary:
        log.debug("Dictionary is empty, no key can score")
        return scores

    words = [bytearray() for _ in range(ASCII_ALPHABET_SIZE)]

    for b in iter_stream_bytes(ciphertext):
        for shift, word in enumerate(words):
            shifted = shift_byte(b, shift)
            if shifted in _ALPHANUMERICS:
                word.append(_LOWERCASE[shifted])
            elif word and shifted in _WHITESPACE:
                if bytes(word) in dictionary:
                    scores.hit(shift)
                word.clear()

    # The final word of the stream has no whitespace after it
    for shift, word in enumerate(words):
        if word and bytes(word) in dictionary:
            scores.hit(shift)

    log.debug("Dictionary attack scored %d of %d keys", len(scores), ASCII_ALPHABET_SIZE)
    return scores


# Relative frequency of each ASCII code in a large corpus of English prose, indexed by code
en_ascii_frequencies = (
    0.0, 0.0, 0.0, 0.0,
    0.0, 6.338218895840436e-08, 0.0, 0.0,
    0.0, 1.2676437791680872e-07, 0.019578060965172565, 0.0,
    0.0, 0.0, 0.0, 0.0,
    0.0, 0.0, 0.0, 0.0,
    0.0, 0.0, 0.0, 0.0,
    0.0, 0.0, 0.0, 6.338218895840436e-08,
    0.0, 0.0, 6.338218895840436e-08, 0.0,
    0.167564443682168, 5.070575116672349e-07, 0.0015754276887500987, 0.0,
    5.070575116672349e-07, 0.0, 2.0282300466689395e-06, 0.0015078622753204398,
    0.0003307916441739124, 0.0003314254660634964, 4.436753227088305e-07, 1.5211725350017046e-06,
    0.008634492219614468, 0.002076717421222119, 0.011055184780313847, 0.000519607185080999,
    0.005918945715880591, 0.004937789430804492, 0.002756237869045172, 0.0021865587546870337,
    0.0018385271551164353, 0.0025269211093936652, 0.0019199098857390264, 0.0018243295447897528,
    0.002552781042488694, 0.002442242504945237, 0.00012036277683200988, 7.41571610813331e-06,
    0.00044107665296153596, 2.5352875583361743e-07, 0.0004404428310719519, 4.626899793963519e-06,
    6.338218895840436e-08, 0.0024774830020061096, 0.0017387002075069484, 0.002987392712176473,
    0.0010927723198318497, 0.0012938206232079082, 0.001220297284016159, 0.0009310209736100016,
    0.0008752446473266058, 0.0020910417959267183, 0.0008814561018445294, 0.0003808001912620934,
    0.0010044809306127922, 0.0018134911904778657, 0.0012758834637326799, 0.0008210528757671701,
    0.00138908405321239, 0.00010001709417636208, 0.0011037374385216535, 0.0030896915651553373,
    0.0030701064687671904, 0.0010426370083657518, 0.0002556203680692448, 0.0008048270353938186,
    6.572732994986532e-05, 0.00025194420110965734, 8.619977698342993e-05, 6.97204078542448e-07,
    0.0, 6.338218895840436e-07, 2.2183766135441526e-06, 1.2676437791680872e-07,
    0.0, 0.0612553996079051, 0.01034644514338097, 0.02500268898936656,
    0.03188948073064199, 0.08610229517681191, 0.015750347191785568, 0.012804659959943725,
    0.02619237267611581, 0.05480626188138746, 0.000617596049210692, 0.004945712204424292,
    0.03218192615049607, 0.018140172626462205, 0.05503703643138501, 0.0541904405334676,
    0.017362092874808832, 0.00100853739070613, 0.051525029341199825, 0.0518864979648296,
    0.0632964962389326, 0.019247776378510318, 0.007819143740853554, 0.009565830104169261,
    0.0023064144740073764, 0.010893686962847832, 0.0005762708620098124, 6.338218895840436e-08,
    0.0, 0.0, 1.9014656687521307e-07, 3.1057272589618137e-06,
)


def manhattan_distance(observed: Sequence[float], expected: Sequence[float]) -> float:
    """
    Return the sum of the absolute differences between two distributions. Zero means identical, bigger number
    == worse match

    >>> manhattan_distance([0.5, 0.5], [0.5, 0.5])
    0.0
    >>> manhattan_distance([1.0, 0.0], [0.0, 1.0])
    2.0
    >>> len(en_ascii_frequencies), abs(sum(en_ascii_frequencies) - 1) < 1e-9
    (128, True)

    >>> manhattan_distance([1.0], [0.5, 0.5])
    Traceback (most recent call last):
    ValueError: Distributions are of different length
    """
    if len(observed) != len(expected):
        raise ValueError("Distributions are of different length")
    res = 0.0
    for o, e in zip(observed, expected):
        res += abs(o - e)
    return res


def find_min_distance_shifts(distributions: Sequence[Sequence[float]]) -> MinimumDistanceKeys:
    """
    Given one character distribution per candidate key, return every key whose distribution is closest to
    English. Ties all survive

    >>> flat = [[0.0] * ASCII_ALPHABET_SIZE for _ in range(ASCII_ALPHABET_SIZE)]
    >>> len(find_min_distance_shifts(flat))
    128
    >>> flat[9] = list(en_ascii_frequencies)
    >>> find_min_distance_shifts(flat)
    {9: 1}
    >>> flat[5] = list(en_ascii_frequencies)
    >>> find_min_distance_shifts(flat)
    {5: 1, 9: 1}
    """
    keys = MinimumDistanceKeys()
    min_distance = inf
    for shift, distribution in enumerate(distributions):
        distance = manhattan_distance(distribution, en_ascii_frequencies)
        if distance < min_distance:
            keys.replace(shift)
            min_distance = distance
        elif distance == min_distance:
            keys.tie(shift)
    return keys


def ascii_frequency_analysis_attack(ciphertext: BinaryIO) -> MinimumDistanceKeys:
    """
    Shift the ciphertext by every candidate key and return the key(s) whose character frequencies are closest
    to those of English text

    An empty or unreadable stream gives an empty result. A stream that fails part way through is scored on
    what was read before the failure

    >>> import io
    >>> plaintext = open("data/plaintext.txt", "rb").read()
    >>> ascii_frequency_analysis_attack(io.BytesIO(caesar_cipher(plaintext, inverse_key(5))))
    {5: 1}
    >>> ascii_frequency_analysis_attack(open("data/ciphertext.txt", "rb"))
    {27: 1}
    >>> ascii_frequency_analysis_attack(io.BytesIO(plaintext)) == ascii_frequency_analysis_attack(io.BytesIO(plaintext))
    True

    >>> ascii_frequency_analysis_attack(io.BytesIO())
    {}
    >>> closed = io.BytesIO(plaintext)
    >>> closed.close()
    >>> ascii_frequency_analysis_attack(closed)
    {}

    >>> class FaultyStream(io.BytesIO):
    ...     def read(self, size=-1):
    ...         if self.tell():
    ...             raise OSError("device went away")
    ...         return super().read(512)
    >>> 27 in ascii_frequency_analysis_attack(FaultyStream(open("data/ciphertext.txt", "rb").read()))
    True
    """
    histograms = [[0] * ASCII_ALPHABET_SIZE for _ in range(ASCII_ALPHABET_SIZE)]
    num_bytes = 0

    for b in iter_stream_bytes(ciphertext):
        for shift, histogram in enumerate(histograms):
            histogram[shift_byte(b, shift)] += 1
        num_bytes += 1

    if not num_bytes:
        return MinimumDistanceKeys()

    distributions = [[count / num_bytes for count in histogram] for histogram in histograms]

    keys = find_min_distance_shifts(distributions)
    log.debug("Frequency attack over %d bytes left %d candidate key(s)", num_bytes, len(keys))
    return keys


def find_keys(scores: Dict[int, int]) -> List[int]:
    """
    Return every key sharing the highest score, smallest first. An empty list means no key stood out

    >>> find_keys({27: 3, 4: 1})
    [27]
    >>> find_keys({96: 1, 0: 1})
    [0, 96]
    >>> find_keys({})
    []
    """
    if not scores:
        return []
    max_score = max(scores.values())
    return sorted(k for k, v in scores.items() if v == max_score)


@dataclass
class ScoredKey:
    key: int
    score: int
    plaintext: bytes

    def __repr__(self):
        return f"ScoredKey(key={self.key}, score={self.score}, plaintext={self.plaintext!r})"


def decrypt_with_best_keys(scores: Dict[int, int], ciphertext: bytes) -> List[ScoredKey]:
    """
    Decrypt ciphertext with every top scoring key

    >>> decrypt_with_best_keys({27: 3, 4: 1}, caesar_cipher(b"attack at dawn", 101))
    [ScoredKey(key=27, score=3, plaintext=b'attack at dawn')]
    >>> decrypt_with_best_keys({}, b"FYYF")
    []
    """
    return [ScoredKey(key=k, score=scores[k], plaintext=caesar_cipher(ciphertext, k)) for k in find_keys(scores)]


class StreamOpenError(Exception):
    pass


def open_binary(path: str, mode: str, description: str) -> BinaryIO:
    """
    Open path in binary mode, raising StreamOpenError with a message fit for the user if it can't be opened

    >>> open_binary("data/no_such_file.txt", "rb", "ciphertext file")
    Traceback (most recent call last):
    caesar_util.StreamOpenError: unable to open ciphertext file "data/no_such_file.txt"
    """
    try:
        return open(path, mode)
    except OSError as e:
        raise StreamOpenError(f'unable to open {description} "{path}"') from e
