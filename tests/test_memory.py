import unittest

from cardinal import config
from cardinal.memory import DataMemory, InstructionMemory


class TestInstructionMemory(unittest.TestCase):

    def test_words_are_big_endian(self):
        imem = InstructionMemory(64)
        imem.load([0x1234_5678, 0xA8C0_0001], base=4)
        self.assertEqual(imem.data[4:8], bytearray(b"\x12\x34\x56\x78"))
        self.assertEqual(imem.read(4), 0x1234_5678)
        self.assertEqual(imem.read(8), 0xA8C0_0001)
        self.assertEqual(imem.read(0), 0)

    def test_addresses_wrap(self):
        imem = InstructionMemory(16)
        imem.load([0xDEAD_BEEF], base=12)
        self.assertEqual(imem.read(28), 0xDEAD_BEEF)


class TestDataMemory(unittest.TestCase):

    def test_write_lands_on_commit(self):
        dmem = DataMemory(8)
        dmem.write(3, 0x55)
        self.assertEqual(dmem.read(3), 0)
        dmem.commit()
        self.assertEqual(dmem.read(3), 0x55)
        self.assertEqual(dmem.read(11), 0x55)

    def test_initial_data_and_dump(self):
        dmem = DataMemory(4, initial_data=[(1, 7), (6, 1 << 64 | 9)])
        self.assertEqual(dmem.dump(0, 10), [(0, 0), (1, 7), (2, 9), (3, 0)])
        self.assertEqual(str(dmem), "DataMemory(4 words, 2 non-zero entries)")


class TestMemoryDepths(unittest.TestCase):

    def setUp(self):
        self.saved = (config.IMEM_SIZE_BYTES, config.DMEM_SIZE_WORDS)

    def tearDown(self):
        config.set_memory_depths(*self.saved)

    def test_defaults_follow_config(self):
        config.set_memory_depths(imem_bytes=128, dmem_words=32)
        self.assertEqual(InstructionMemory().size, 128)
        self.assertEqual(DataMemory().size, 32)
        self.assertEqual(DataMemory(8).size, 8)

    def test_partial_override(self):
        config.set_memory_depths(dmem_words=64)
        self.assertEqual(config.IMEM_SIZE_BYTES, self.saved[0])
        self.assertEqual(DataMemory().size, 64)


if __name__ == "__main__":
    unittest.main()
