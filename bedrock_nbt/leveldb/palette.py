from array import array

EMPTY = 127
UNIFORM = 0
BITS_PER_INDEX = (1, 2, 3, 4, 5, 6, 8, 16)
INDICES = 4096


def words_for(bits: int) -> int:
    """Number of u32 words holding 4096 indices; indices never straddle two words."""
    per_word = 32 // bits
    return -(-INDICES // per_word)


def bits_for(palette_len: int) -> int:
    for bits in BITS_PER_INDEX:
        if palette_len <= (1 << bits):
            return bits
    raise ValueError(f"Palette of {palette_len} entries is too large")


class PalettedStorage:
    """
    A 16x16x16 volume stored as palette indices packed into little-endian u32 words.

    `bits` is `EMPTY` (127) for a storage with no data of its own, `UNIFORM` (0) for a
    single-entry palette with no index words, and otherwise one of `BITS_PER_INDEX`.
    Indices are packed least-significant bits first, `32 // bits` per word.
    """

    def __init__(self, bits: int, words=None, palette=(), runtime: bool = False):
        self.bits = bits
        self.words = array("I", words or ())
        self.palette = list(palette)
        self.runtime = runtime

    @classmethod
    def empty(cls, runtime=False):
        return cls(EMPTY, runtime=runtime)

    @classmethod
    def uniform(cls, value, runtime=False):
        return cls(UNIFORM, palette=[value], runtime=runtime)

    @classmethod
    def from_indices(cls, indices, palette, runtime=False, bits=None):
        """Packs 4096 indices into words. A single-entry palette gives a uniform storage unless `bits` is forced."""
        indices = list(indices)
        if len(indices) != INDICES:
            raise ValueError(f"Expected {INDICES} indices, got {len(indices)}")
        if len(palette) == 1 and bits is None:
            return cls.uniform(palette[0], runtime)
        bits = bits or bits_for(len(palette))
        per_word = 32 // bits
        words = array("I", bytes(4 * words_for(bits)))
        for i, index in enumerate(indices):
            if not 0 <= index < len(palette):
                raise ValueError(f"Index {index} out of bounds for a palette of {len(palette)}")
            words[i // per_word] |= index << ((i % per_word) * bits)
        return cls(bits, words, palette, runtime)

    @property
    def is_empty(self) -> bool:
        return self.bits == EMPTY

    @property
    def is_uniform(self) -> bool:
        return self.bits == UNIFORM

    @property
    def header(self) -> int:
        return (self.bits << 1) | int(self.runtime)

    def indices(self) -> list:
        if self.is_empty:
            return []
        if self.is_uniform:
            return [0] * INDICES
        bits = self.bits
        mask = (1 << bits) - 1
        shifts = range(0, (32 // bits) * bits, bits)
        result = [(word >> shift) & mask for word in self.words for shift in shifts]
        del result[INDICES:]
        return result

    def values(self) -> list:
        """The 4096 palette entries in storage order, index `(x << 8) | (z << 4) | y`."""
        palette = self.palette
        return [palette[i] for i in self.indices()]

    def validate(self):
        if self.is_empty:
            return
        if self.is_uniform:
            if len(self.palette) != 1:
                raise ValueError(f"Uniform storage needs exactly one palette entry, has {len(self.palette)}")
            return
        if self.bits not in BITS_PER_INDEX:
            raise ValueError(f"Invalid bits per index: {self.bits}")
        if len(self.words) != words_for(self.bits):
            raise ValueError(f"Expected {words_for(self.bits)} index words, got {len(self.words)}")
        if not 0 < len(self.palette) <= INDICES:
            raise ValueError(f"Invalid palette length {len(self.palette)}")
        highest = max(self.indices())
        if highest >= len(self.palette):
            raise ValueError(f"Index {highest} out of bounds for a palette of {len(self.palette)}")

    #-----------------------------------------------------------

    @classmethod
    def read(cls, p, read_palette):
        """Reads a header byte and the storage after it. `read_palette(p, count)` returns the entries."""
        header = p.u8()
        runtime = bool(header & 1)
        bits = header >> 1
        if bits == EMPTY:
            return cls(EMPTY, runtime=runtime)
        if bits == UNIFORM:
            return cls(UNIFORM, palette=read_palette(p, 1), runtime=runtime)
        if bits not in BITS_PER_INDEX:
            raise ValueError(f"Invalid bits per index: {bits}")
        words = p.u32_array(words_for(bits))
        count = p.u32()
        if not 0 < count <= INDICES:
            raise ValueError(f"Invalid palette length {count}")
        storage = cls(bits, words, read_palette(p, count), runtime)
        storage.validate()
        return storage

    def write(self, b, write_palette):
        """Writes the header byte and storage. `write_palette(b, entries)` writes the entries."""
        self.validate()
        b.u8(self.header)
        if self.is_empty:
            return
        if self.is_uniform:
            write_palette(b, self.palette)
            return
        b.u32_array(self.words)
        b.u32(len(self.palette))
        write_palette(b, self.palette)

    def __eq__(self, other):
        if not isinstance(other, PalettedStorage):
            return NotImplemented
        return (self.bits, self.runtime, self.words, self.palette) == (other.bits, other.runtime, other.words, other.palette)

    def __repr__(self):
        if self.is_empty:
            return "PalettedStorage(empty)"
        return f"PalettedStorage(bits={self.bits}, palette={len(self.palette)} entries)"
