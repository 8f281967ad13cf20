import unittest

from cardinal.alu import ArithmeticUnit, LaneWidth
from cardinal.config import ALU_FUNCTIONS
from cardinal.register_file import WriteWidth

F = ALU_FUNCTIONS


class TestArithmeticUnit(unittest.TestCase):

    def setUp(self):
        self.alu = ArithmeticUnit()

    def apply(self, name, a, b=0, lanes=LaneWidth.DOUBLEWORD, width=WriteWidth.DOUBLEWORD):
        return self.alu.apply(a, b, F[name], width, lanes)

    def test_bitwise(self):
        self.assertEqual(self.apply("VAND", 0b1100, 0b1010), 0b1000)
        self.assertEqual(self.apply("VOR", 0b1100, 0b1010), 0b1110)
        self.assertEqual(self.apply("VXOR", 0b1100, 0b1010), 0b0110)
        self.assertEqual(self.apply("VNOT", 0), 0xFFFF_FFFF_FFFF_FFFF)
        self.assertEqual(self.apply("VMOV", 0x1234, 0x9999), 0x1234)

    def test_add_sub_wrap(self):
        self.assertEqual(self.apply("VADD", 5, 7), 12)
        self.assertEqual(self.apply("VADD", 0xFFFF_FFFF_FFFF_FFFF, 1), 0)
        self.assertEqual(self.apply("VSUB", 0, 1), 0xFFFF_FFFF_FFFF_FFFF)

    def test_lanes_do_not_carry(self):
        self.assertEqual(self.apply("VADD", 0x01FF, 0x0101, LaneWidth.BYTE), 0x0200)
        self.assertEqual(self.apply("VSUB", 0, 1, LaneWidth.BYTE), 0xFF)
        self.assertEqual(self.apply("VADD", 0x0000_FFFF, 0x0000_0001, LaneWidth.HALFWORD), 0)

    def test_widening_multiply(self):
        a = 0x0000_0003_0000_0005
        b = 0x0000_0004_0000_0006
        self.assertEqual(self.apply("VMULEU", a, b, LaneWidth.WORD), 12)
        self.assertEqual(self.apply("VMULOU", a, b, LaneWidth.WORD), 30)
        self.assertEqual(self.apply("VSQEU", a, 0, LaneWidth.WORD), 9)
        self.assertEqual(self.apply("VSQOU", a, 0, LaneWidth.WORD), 25)
        self.assertEqual(self.apply("VMULEU", 1 << 40, 1 << 30), 0)

    def test_shifts(self):
        self.assertEqual(self.apply("VSLL", 0x01, 0x03, LaneWidth.BYTE), 0x08)
        self.assertEqual(self.apply("VSRL", 0x80, 0x01, LaneWidth.BYTE), 0x40)
        self.assertEqual(self.apply("VSRA", 0x80, 0x01, LaneWidth.BYTE), 0xC0)
        self.assertEqual(self.apply("VSLL", 1, 65), 2)
        self.assertEqual(self.apply("VRTTH", 0x12, 0, LaneWidth.BYTE), 0x21)

    def test_divide_modulo_sqrt(self):
        self.assertEqual(self.apply("VDIV", 100, 7), 14)
        self.assertEqual(self.apply("VMOD", 100, 7), 2)
        self.assertEqual(self.apply("VDIV", 100, 0), 0)
        self.assertEqual(self.apply("VMOD", 100, 0), 0)
        self.assertEqual(self.apply("VSQRT", 144), 12)
        self.assertEqual(self.apply("VSQRT", 0x0010_0009, 0, LaneWidth.HALFWORD), 0x0004_0003)

    def test_result_masked_like_register_writes(self):
        value = 0x1122_3344_5566_7788
        self.assertEqual(self.apply("VMOV", value, width=WriteWidth.UPPER_WORD), 0x1122_3344_0000_0000)
        self.assertEqual(self.apply("VMOV", value, width=WriteWidth.ODD_BYTES), 0x0022_0044_0066_0088)

    def test_unknown_function_yields_zero(self):
        self.assertEqual(self.alu.apply(1, 2, 0x3F), 0)

    def test_latency_classes(self):
        expected = {
            "VAND": 1, "VOR": 1, "VXOR": 1, "VNOT": 1, "VMOV": 1,
            "VADD": 3, "VSUB": 3, "VSLL": 3, "VSRL": 3, "VSRA": 3, "VRTTH": 3,
            "VMULEU": 4, "VMULOU": 4, "VMOD": 4, "VSQEU": 4, "VSQOU": 4,
            "VDIV": 5, "VSQRT": 5,
        }
        for name, latency in expected.items():
            self.assertEqual(ArithmeticUnit.latency(F[name]), latency, name)
        self.assertEqual(ArithmeticUnit.latency(0x3F), 1)


if __name__ == "__main__":
    unittest.main()
