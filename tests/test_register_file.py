"""
RegisterFile tests: R0 hard-wiring, staged writes and reset, and the
participation masks that limit which bytes of a lane a write touches.
"""

import unittest

from cardinal.register_file import RegisterFile, WriteWidth, merge_write

OLD = 0x1122_3344_5566_7788
NEW = 0xAAAA_AAAA_AAAA_AAAA


class TestRegisterFile(unittest.TestCase):

    def setUp(self):
        self.rf = RegisterFile()

    def _write(self, addr, value, width=WriteWidth.DOUBLEWORD, enable=True):
        self.rf.write(addr, value, width, enable=enable)
        self.rf.commit()

    def test_write_lands_on_commit(self):
        self.rf.write(5, 42)
        self.assertEqual(self.rf.read(5), 0)
        self.rf.commit()
        self.assertEqual(self.rf.read(5), 42)

    def test_r0_rejects_writes(self):
        self._write(0, 0xFFFF)
        self.assertEqual(self.rf.read(0), 0)
        self.assertEqual(self.rf.registers[0], 0)

    def test_disabled_write_is_dropped(self):
        self._write(3, 99, enable=False)
        self.assertEqual(self.rf.read(3), 0)

    def test_every_register_reads_back(self):
        for addr in range(1, 32):
            self._write(addr, addr * 0x0101_0101)
        for addr in range(1, 32):
            self.assertEqual(self.rf.read(addr), addr * 0x0101_0101)

    def test_values_are_masked_to_64_bits(self):
        self._write(1, (1 << 70) | 5)
        self.assertEqual(self.rf.read(1), 5)

    def test_addresses_wrap(self):
        self._write(1, 7)
        self.assertEqual(self.rf.read(33), 7)

    def test_partial_widths(self):
        expected = {
            WriteWidth.UPPER_WORD: 0xAAAA_AAAA_5566_7788,
            WriteWidth.LOWER_WORD: 0x1122_3344_AAAA_AAAA,
            WriteWidth.EVEN_BYTES: 0xAA22_AA44_AA66_AA88,
            WriteWidth.ODD_BYTES:  0x11AA_33AA_55AA_77AA,
            WriteWidth.DOUBLEWORD: NEW,
        }
        for width, value in expected.items():
            with self.subTest(width=width.name):
                self._write(9, OLD)
                self._write(9, NEW, width)
                self.assertEqual(self.rf.read(9), value)

    def test_reserved_width_behaves_as_doubleword(self):
        self.assertEqual(WriteWidth.from_bits(0b111), WriteWidth.DOUBLEWORD)
        self.assertEqual(merge_write(OLD, NEW, WriteWidth.from_bits(0b101)), NEW)

    def test_reset_clears_all_lanes(self):
        for addr in range(32):
            self._write(addr, 0x55)
        self.rf.reset()
        self.rf.commit()
        self.assertEqual(self.rf.registers, [0] * 32)


if __name__ == "__main__":
    unittest.main()
