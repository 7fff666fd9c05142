import random
from concurrent.futures import ThreadPoolExecutor

import pytest
from bitarray import bitarray

import huffman as huff


@pytest.fixture
def abc_table():
    # counts a=3, b=2, c=1
    root = huff.build_huffman_tree(huff.build_frequency_table("aaabbc"))
    return huff.generate_huffman_codes(root)


class TestFrequencyTable:

    def test_counts_every_symbol(self):
        ft = huff.build_frequency_table(b"abracadabra")
        assert ft == {ord("a"): 5, ord("b"): 2, ord("r"): 2, ord("c"): 1, ord("d"): 1}

    def test_first_occurrence_order(self):
        assert list(huff.build_frequency_table("cabbac")) == ["c", "a", "b"]

    def test_empty_input_gives_empty_table(self):
        assert huff.build_frequency_table([]) == {}


class TestTreeBuilder:

    def test_root_frequency_is_total(self):
        root = huff.build_huffman_tree({"a": 3, "b": 2, "c": 1})
        assert root.frequency == 6
        assert not root.is_leaf

    def test_every_internal_node_has_two_children(self):
        data = bytes(random.Random(7).randrange(40) for _ in range(2000))
        stack = [huff.build_huffman_tree(huff.build_frequency_table(data))]
        while stack:
            node = stack.pop()
            if node.is_leaf:
                assert node.symbol is not None
                continue
            assert node.left is not None and node.right is not None
            assert node.frequency == node.left.frequency + node.right.frequency
            stack.extend([node.left, node.right])

    def test_first_extracted_goes_left(self):
        root = huff.build_huffman_tree({"a": 3, "b": 2, "c": 1})
        assert root.left.symbol == "a"
        assert root.right.left.symbol == "c"
        assert root.right.right.symbol == "b"
        assert huff.tree_height(root) == 2

    def test_single_symbol_is_bare_leaf(self):
        root = huff.build_huffman_tree({"x": 5})
        assert root.is_leaf
        assert root.symbol == "x"
        assert huff.tree_height(root) == 0

    def test_empty_table_raises(self):
        with pytest.raises(huff.EmptyInputError):
            huff.build_huffman_tree({})

    def test_negative_frequency_raises(self):
        with pytest.raises(ValueError):
            huff.build_huffman_tree({"a": 1, "b": -1})


class TestCodeGeneration:

    def test_abc_codes(self, abc_table):
        assert dict(abc_table) == {"a": "0", "c": "10", "b": "11"}

    def test_most_frequent_symbol_gets_shortest_code(self, abc_table):
        lengths = abc_table.code_lengths()
        assert lengths["a"] < lengths["b"]
        assert lengths["c"] == max(lengths.values())

    def test_single_symbol_gets_one_bit_code(self):
        table = huff.generate_huffman_codes(huff.HuffmanNode("a", 5))
        assert dict(table) == {"a": "0"}

    def test_skewed_distribution(self):
        data = "a" * 100 + "b" + "c"
        _, table = huff.encode(data)
        assert len(table["a"]) < len(table["b"])
        assert len(table["a"]) < len(table["c"])

    def test_deep_tree_does_not_recurse(self):
        # fibonacci frequencies give a tree of height k - 1
        fib = [1, 1]
        while len(fib) < 60:
            fib.append(fib[-1] + fib[-2])
        table = huff.generate_huffman_codes(huff.build_huffman_tree({i: f for i, f in enumerate(fib)}))
        assert max(table.code_lengths().values()) == 59
        assert table.is_prefix_free()

    def test_deterministic(self):
        data = bytes(random.Random(3).randrange(8) for _ in range(500))
        ft = huff.build_frequency_table(data)
        first = huff.generate_huffman_codes(huff.build_huffman_tree(ft))
        second = huff.generate_huffman_codes(huff.build_huffman_tree(ft))
        assert dict(first) == dict(second)

    def test_ties_are_deterministic(self):
        # all frequencies equal
        tables = [huff.encode("abcdefgh")[1] for _ in range(5)]
        assert all(dict(t) == dict(tables[0]) for t in tables)

    @pytest.mark.parametrize("seed", [0, 1, 2, 3])
    def test_prefix_free(self, seed):
        rng = random.Random(seed)
        alphabet = rng.randint(2, 256)
        data = bytes(rng.randrange(alphabet) for _ in range(3000))
        _, table = huff.encode(data)
        codes = list(table.values())
        for i, a in enumerate(codes):
            for j, b in enumerate(codes):
                if i != j:
                    assert not b.startswith(a)
        assert table.is_prefix_free()


class TestCodeTable:

    def test_inverse(self, abc_table):
        assert abc_table.inverse == {"0": "a", "10": "c", "11": "b"}

    def test_is_read_only(self, abc_table):
        with pytest.raises(TypeError):
            abc_table["a"] = "1"

    def test_prefix_violation_detected(self):
        assert not huff.CodeTable({"a": "0", "b": "01"}).is_prefix_free()
        assert not huff.CodeTable({"a": "0", "b": "0"}).is_prefix_free()

    def test_average_code_length(self, abc_table):
        assert abc_table.average_code_length({"a": 3, "b": 2, "c": 1}) == pytest.approx(1.5)

    def test_equality_with_dict(self, abc_table):
        assert abc_table == {"a": "0", "b": "11", "c": "10"}


class TestEncode:

    def test_payload_bits(self, abc_table):
        payload = huff.huffman_encode("aaabbc", abc_table)
        assert isinstance(payload, bitarray)
        assert payload.to01() == "000111110"

    def test_missing_symbol(self, abc_table):
        with pytest.raises(huff.MissingSymbolError, match="'d'"):
            huff.huffman_encode("abd", abc_table)

    @pytest.mark.parametrize("code", ["2", "1 0", "1_0", "", 1, None])
    def test_invalid_code_in_supplied_table(self, code):
        with pytest.raises(huff.CorruptTableError):
            huff.huffman_encode("ab", {"a": "0", "b": code})

    def test_encode_returns_payload_and_table(self):
        payload, table = huff.encode("aaabbc")
        assert payload.to01() == "000111110"
        assert dict(table) == {"a": "0", "c": "10", "b": "11"}

    @pytest.mark.parametrize("empty", [b"", "", [], ()])
    def test_empty_input(self, empty):
        with pytest.raises(huff.EmptyInputError):
            huff.encode(empty)

    def test_accepts_iterators(self):
        payload, table = huff.encode(iter("aaabbc"))
        assert huff.decode(payload, table) == list("aaabbc")


class TestDecode:

    def test_abc_scenario(self):
        payload, table = huff.encode("aaabbc")
        assert huff.decode(payload, table) == list("aaabbc")

    def test_text_payload(self, abc_table):
        assert huff.decode("000111110", abc_table) == list("aaabbc")

    def test_decode_with_tree(self):
        root = huff.build_huffman_tree({"a": 3, "b": 2, "c": 1})
        assert huff.huffman_decode("000111110", root) == list("aaabbc")

    def test_single_symbol(self):
        payload, table = huff.encode("aaaaa")
        assert len(table) == 1
        assert len(table["a"]) == 1
        assert payload.to01() == "00000"
        assert huff.decode(payload, table) == ["a"] * 5

    def test_single_symbol_rejects_one_bits(self):
        with pytest.raises(huff.CorruptPayloadError):
            huff.decode("00100", {"a": "0"})

    def test_truncated_payload(self):
        payload, table = huff.encode("aaabbc")
        with pytest.raises(huff.CorruptPayloadError):
            huff.decode(payload[:-1], table)

    def test_extra_bits(self, abc_table):
        with pytest.raises(huff.CorruptPayloadError):
            huff.decode("0001111101", abc_table)

    @pytest.mark.parametrize("text", ["0102", "000 111 110", "000_111_110", "000111110\n", "0001\t11110"])
    def test_bad_characters(self, abc_table, text):
        with pytest.raises(huff.CorruptPayloadError):
            huff.decode(text, abc_table)

    def test_empty_payload(self, abc_table):
        with pytest.raises(huff.EmptyInputError):
            huff.decode("", abc_table)

    def test_empty_table(self):
        with pytest.raises(huff.CorruptTableError):
            huff.decode("0101", {})

    def test_wrong_payload_type(self, abc_table):
        with pytest.raises(TypeError):
            huff.decode(b"\x01", abc_table)

    @pytest.mark.parametrize("size", [1, 2, 3, 100, 10 * 1024])
    def test_roundtrip_random_bytes(self, size):
        data = bytes(random.Random(size).getrandbits(8) for _ in range(size))
        payload, table = huff.encode(data)
        assert bytes(huff.decode(payload, table)) == data

    def test_roundtrip_all_byte_values(self):
        data = bytes(range(256))
        payload, table = huff.encode(data)
        assert len(payload) == 256 * 8
        assert bytes(huff.decode(payload, table)) == data

    def test_roundtrip_arbitrary_symbols(self):
        data = [("x", 1), None, 3.5, "word", ("x", 1), 3.5, 3.5]
        payload, table = huff.encode(data)
        assert huff.decode(payload, table) == data


class TestRebuildTree:

    def test_matches_original_tree(self, abc_table):
        root = huff.rebuild_huffman_tree(abc_table)
        assert huff.generate_huffman_codes(root) == abc_table

    @pytest.mark.parametrize("table", [
        {"a": "0", "b": "01"},
        {"b": "01", "a": "0"},
        {"a": "0", "b": "0"},
        {"a": "0", "b": "10"},
        {"a": "0", "b": "2"},
        {"a": "0", "b": ""},
        {"a": "0", "b": 1},
        {"a": "1"},
        {"a": ""},
        {},
    ])
    def test_invalid_tables(self, table):
        with pytest.raises(huff.CorruptTableError):
            huff.rebuild_huffman_tree(table)


def test_independent_operations_do_not_share_state():
    first_payload, first_table = huff.encode("aaabbc")
    second_payload, second_table = huff.encode("xyzzy")
    assert set(first_table) == {"a", "b", "c"}
    assert set(second_table) == {"x", "y", "z"}
    assert huff.decode(first_payload, first_table) == list("aaabbc")
    assert huff.decode(second_payload, second_table) == list("xyzzy")


def test_concurrent_encode_decode():
    inputs = [bytes(random.Random(i).randrange(i + 2) for _ in range(2000)) for i in range(16)]

    def roundtrip(data):
        payload, table = huff.encode(data)
        return bytes(huff.decode(payload, table))

    with ThreadPoolExecutor(max_workers=4) as pool:
        assert list(pool.map(roundtrip, inputs)) == inputs
