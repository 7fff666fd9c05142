import heapq
import itertools
import logging
from collections import Counter
from collections.abc import Mapping, Sequence
from typing import Dict, Hashable, Iterable, List, Optional, Tuple, Union

from bitarray import bitarray

logger = logging.getLogger(__name__)

ENDIAN = "big" # bit order used for every payload this module produces
SINGLE_SYMBOL_CODE = "0" # a lone Leaf root has no path, so it gets a fixed one-bit code

FrequencyTable = Dict[Hashable, int]
Payload = Union[bitarray, str]


class HuffmanError(Exception):
    """Base class for every error raised by the codec."""


class EmptyInputError(HuffmanError):
    pass


class MissingSymbolError(HuffmanError):
    pass


class CorruptPayloadError(HuffmanError):
    pass


class CorruptTableError(HuffmanError):
    pass


class HuffmanNode: # Node for Huffman tree
    def __init__(self, symbol, frequency, left=None, right=None):
        self.symbol = symbol    # None for internal nodes
        self.frequency = frequency
        self.left = left
        self.right = right

    @property
    def is_leaf(self) -> bool:
        return self.left is None and self.right is None

    def __repr__(self):
        if self.is_leaf:
            return f"HuffmanNode(symbol={self.symbol!r}, frequency={self.frequency})"
        return f"HuffmanNode(frequency={self.frequency}, left={self.left!r}, right={self.right!r})"


class CodeTable(Mapping):
    """
    Read-only mapping of symbol -> code string ('0'/'1' characters)
    The inverse mapping (code -> symbol) is built on first use
    """

    def __init__(self, codes: Union[Mapping, Iterable[Tuple[Hashable, str]]]):
        self._codes: Dict[Hashable, str] = dict(codes)
        self._inverse: Optional[Dict[str, Hashable]] = None

    def __getitem__(self, symbol):
        return self._codes[symbol]

    def __iter__(self):
        return iter(self._codes)

    def __len__(self):
        return len(self._codes)

    def __repr__(self):
        return f"CodeTable({self._codes!r})"

    @property
    def inverse(self) -> Dict[str, Hashable]:
        if self._inverse is None:
            self._inverse = {code: symbol for symbol, code in self._codes.items()}
        return dict(self._inverse)

    def code_lengths(self) -> Dict[Hashable, int]:
        return {symbol: len(code) for symbol, code in self._codes.items()}

    def is_prefix_free(self) -> bool:
        # after sorting, a code that prefixes any other code also prefixes its successor
        codes = sorted(self._codes.values())
        return all(not b.startswith(a) for a, b in zip(codes, codes[1:]))

    def average_code_length(self, frequency_table: Mapping) -> float:
        """Expected bits per symbol under the given frequencies."""
        total = sum(frequency_table.values())
        if total == 0:
            raise EmptyInputError("cannot average code lengths over an empty frequency table")
        return sum(len(self._codes[s]) * f for s, f in frequency_table.items()) / total


def build_frequency_table(symbols: Iterable[Hashable]) -> FrequencyTable:
    # keys keep first-occurrence order, which seeds the tie-break in build_huffman_tree
    return Counter(symbols)


def build_huffman_tree(frequency_table: Mapping) -> HuffmanNode: # frequency_table: dict of symbol -> frequency
    if not frequency_table:
        raise EmptyInputError("cannot build a Huffman tree from an empty frequency table")

    # (frequency, insertion order, node): equal frequencies pop in the order they were pushed
    order = itertools.count()
    priority_queue = []
    for symbol, frequency in frequency_table.items():
        if frequency < 0:
            raise ValueError(f"negative frequency {frequency} for symbol {symbol!r}")
        priority_queue.append((frequency, next(order), HuffmanNode(symbol, frequency)))
    heapq.heapify(priority_queue)

    # Build the tree
    while len(priority_queue) > 1:
        _, _, left = heapq.heappop(priority_queue)
        _, _, right = heapq.heappop(priority_queue)
        merged_node = HuffmanNode(None, left.frequency + right.frequency, left, right) # internal node with combined frequency
        heapq.heappush(priority_queue, (merged_node.frequency, next(order), merged_node))

    root = priority_queue[0][2]
    logger.debug("built Huffman tree over %d symbols, height %d", len(frequency_table), tree_height(root))
    return root # root of the tree


def tree_height(root: HuffmanNode) -> int:
    height = 0
    stack = [(root, 0)]
    while stack:
        node, depth = stack.pop()
        height = max(height, depth)
        if not node.is_leaf:
            stack.append((node.left, depth + 1))
            stack.append((node.right, depth + 1))
    return height


def generate_huffman_codes(root: HuffmanNode) -> CodeTable: # root: root of the Huffman tree
    if root.is_leaf:
        return CodeTable({root.symbol: SINGLE_SYMBOL_CODE})

    codes = {}
    stack = [(root, "")]
    while stack:
        node, current_code = stack.pop()

        # Leaf node -> assign code
        if node.is_leaf:
            codes[node.symbol] = current_code
            continue

        # right is pushed first so the left subtree is finished before it
        stack.append((node.right, current_code + "1"))
        stack.append((node.left, current_code + "0"))

    return CodeTable(codes)


def check_code(symbol, code) -> None:
    if not isinstance(code, str) or not code or set(code) - {"0", "1"}:
        raise CorruptTableError(f"invalid code {code!r} for symbol {symbol!r}")


def rebuild_huffman_tree(table: Mapping) -> HuffmanNode:
    """
    Rebuild the decoding tree from a code table (e.g. one loaded from disk)
    Node frequencies are not recoverable from codes, so they are left at 0
    Raises CorruptTableError unless the codes describe a full prefix-free tree
    """
    if not table:
        raise CorruptTableError("code table is empty")

    for symbol, code in table.items():
        check_code(symbol, code)

    if len(table) == 1:
        ((symbol, code),) = table.items()
        if code != SINGLE_SYMBOL_CODE:
            raise CorruptTableError(f"single-symbol table must use code {SINGLE_SYMBOL_CODE!r}, got {code!r}")
        return HuffmanNode(symbol, 0)

    root = HuffmanNode(None, 0)
    leaves = {} # id(leaf node) -> symbol
    for symbol, code in table.items():
        node = root
        for bit in code[:-1]:
            child = node.left if bit == "0" else node.right
            if child is None:
                child = HuffmanNode(None, 0)
                if bit == "0":
                    node.left = child
                else:
                    node.right = child
            elif id(child) in leaves:
                raise CorruptTableError(
                    f"code for {leaves[id(child)]!r} is a prefix of {code!r} (symbol {symbol!r})")
            node = child

        if (node.left if code[-1] == "0" else node.right) is not None:
            raise CorruptTableError(f"code {code!r} for {symbol!r} collides with or prefixes another code")
        leaf = HuffmanNode(symbol, 0)
        leaves[id(leaf)] = symbol
        if code[-1] == "0":
            node.left = leaf
        else:
            node.right = leaf

    # every internal node needs both children, otherwise some bit paths lead nowhere
    stack = [(root, "")]
    while stack:
        node, prefix = stack.pop()
        if id(node) in leaves:
            continue
        if node.left is None or node.right is None:
            raise CorruptTableError(f"code table is incomplete below prefix {prefix!r}")
        stack.append((node.left, prefix + "0"))
        stack.append((node.right, prefix + "1"))

    return root


def to_bits(payload: Payload) -> bitarray:
    """Accept a packed bitarray or its '0'/'1' text form."""
    if isinstance(payload, bitarray):
        return payload
    if isinstance(payload, str):
        # bitarray itself tolerates whitespace and underscores in text
        stray = set(payload) - {"0", "1"}
        if stray:
            raise CorruptPayloadError(f"payload text may only contain '0' and '1', found {sorted(stray)!r}")
        return bitarray(payload, endian=ENDIAN)
    raise TypeError(f"payload must be a bitarray or str, not {type(payload).__name__}")


def huffman_encode(symbols: Iterable[Hashable], code_map: Mapping) -> bitarray: # code_map: dict of symbol -> Huffman code
    bits_for = {}
    for symbol, code in code_map.items():
        check_code(symbol, code)
        bits_for[symbol] = bitarray(code, endian=ENDIAN)
    payload = bitarray(endian=ENDIAN)
    for position, symbol in enumerate(symbols):
        try:
            payload.extend(bits_for[symbol])
        except KeyError:
            raise MissingSymbolError(f"symbol {symbol!r} at position {position} has no code") from None
    return payload


def huffman_decode(payload: Payload, root: HuffmanNode) -> List[Hashable]: # root: root of the Huffman tree
    bits = to_bits(payload)

    if root.is_leaf:
        # one bit per symbol, and that bit is always SINGLE_SYMBOL_CODE
        if bits.any():
            raise CorruptPayloadError(f"unexpected 1 bit at position {bits.index(1)} in single-symbol payload")
        return [root.symbol] * len(bits)

    decoded = []
    current_node = root
    for position, bit in enumerate(bits):
        current_node = current_node.right if bit else current_node.left
        if current_node is None:
            raise CorruptPayloadError(f"bit {position} leads outside the Huffman tree")
        if current_node.is_leaf: # reached a leaf
            decoded.append(current_node.symbol)
            current_node = root # reset to the root for the next symbol

    if current_node is not root:
        raise CorruptPayloadError(f"payload ends inside a code after {len(bits)} bits")
    return decoded


def encode(symbols: Iterable[Hashable]) -> Tuple[bitarray, CodeTable]:
    """
    Huffman-encode a symbol sequence (bytes, str or any sequence of hashables)
    Returns the packed payload and the code table needed to decode it
    """
    if not isinstance(symbols, Sequence):
        symbols = list(symbols)
    if len(symbols) == 0:
        raise EmptyInputError("nothing to encode")

    frequency_table = build_frequency_table(symbols)
    root = build_huffman_tree(frequency_table)
    table = generate_huffman_codes(root)
    payload = huffman_encode(symbols, table)
    logger.debug("encoded %d symbols into %d bits", len(symbols), len(payload))
    return payload, table


def decode(payload: Payload, table: Mapping) -> List[Hashable]:
    """Decode a payload produced by encode() with the table it returned."""
    bits = to_bits(payload)
    if len(bits) == 0:
        raise EmptyInputError("nothing to decode")

    root = rebuild_huffman_tree(table)
    decoded = huffman_decode(bits, root)
    logger.debug("decoded %d bits into %d symbols", len(bits), len(decoded))
    return decoded
