import unittest

from cardinal.alu import LaneWidth
from cardinal.config import ALU_FUNCTIONS, OPCODE_ALU, OPCODE_STORE
from cardinal.instruction import AssemblyError, Instruction, OpType, assemble, parse_instruction
from cardinal.register_file import WriteWidth


class TestInstructionCodec(unittest.TestCase):

    def test_r_type_field_layout(self):
        instr = parse_instruction("VADD.W.EVEN R1, R2, R3")
        word = instr.encode()
        self.assertEqual(word >> 26, OPCODE_ALU)
        self.assertEqual((word >> 21) & 0x1F, 1)
        self.assertEqual((word >> 16) & 0x1F, 2)
        self.assertEqual((word >> 11) & 0x1F, 3)
        self.assertEqual((word >> 8) & 0b111, WriteWidth.EVEN_BYTES)
        self.assertEqual((word >> 6) & 0b11, LaneWidth.WORD)
        self.assertEqual(word & 0x3F, ALU_FUNCTIONS["VADD"])

    def test_m_type_immediate_aliases_low_half(self):
        word = parse_instruction("VSD R7, 0xC002").encode()
        self.assertEqual(word, OPCODE_STORE << 26 | 7 << 21 | 0xC002)
        decoded = Instruction.decode(word)
        self.assertEqual(decoded.op_type, OpType.STORE)
        self.assertEqual(decoded.imm, 0xC002)
        self.assertTrue(decoded.targets_nic)

    def test_decode_encode_agree(self):
        for text in ("VSQRT.H R31, R30", "VBNEZ R4, 0x0040", "VNOP", "VMULOU.B.ODD R9, R8, R7"):
            instr = parse_instruction(text)
            self.assertEqual(Instruction.decode(instr.encode()), instr, text)

    def test_equal_instructions_hash_alike(self):
        word = parse_instruction("VXOR.H R1, R2, R3").encode()
        decoded = {Instruction.decode(word), Instruction.decode(word), parse_instruction("VNOP")}
        self.assertEqual(len(decoded), 2)
        self.assertIn(parse_instruction("VXOR.H R1, R2, R3"), decoded)

    def test_nic_address_prefix(self):
        self.assertTrue(parse_instruction("VLD R1, 0xC001").targets_nic)
        self.assertFalse(parse_instruction("VLD R1, 0x4001").targets_nic)
        self.assertFalse(parse_instruction("VBEZ R1, 0xC001").targets_nic)

    def test_unknown_opcode_decodes_as_invalid(self):
        instr = Instruction.decode(0xFC00_0000)
        self.assertEqual(instr.op_type, OpType.INVALID)
        self.assertIn("invalid", str(instr))

    def test_disassembly(self):
        self.assertEqual(str(parse_instruction("vadd.b r1, r2, r3")), "VADD.B R1, R2, R3")
        self.assertEqual(str(parse_instruction("VMOV.D.UPPER R1, R2")), "VMOV.D.UPPER R1, R2")
        self.assertEqual(str(parse_instruction("VLD R3, 16")), "VLD R3, 0x0010")

    def test_encode_rejects_out_of_range_fields(self):
        with self.assertRaises(ValueError):
            Instruction(OpType.LOAD, rd=40).encode()


class TestAssembler(unittest.TestCase):

    def test_labels_resolve_to_byte_addresses(self):
        words = assemble("""
            start:  VNOP            # first
                    VADD R1, R1, R2 ; second
            loop:   VBNEZ R1, loop
                    VBEZ R0, start
        """)
        self.assertEqual(len(words), 4)
        self.assertEqual(words[2] & 0xFFFF, 8)
        self.assertEqual(words[3] & 0xFFFF, 0)

    def test_base_offsets_labels(self):
        words = assemble("VNOP\nend: VBEZ R0, end", base=0x100)
        self.assertEqual(words[1] & 0xFFFF, 0x104)

    def test_errors_carry_line_numbers(self):
        cases = {
            "VNOP\nVFOO R1, R2, R3": 2,
            "VADD R1, R2": 1,
            "VLD R32, 0": 1,
            "VLD R1, 0x10000": 1,
            "VNOP\nVBEZ R0, nowhere": 2,
            "a: VNOP\na: VNOP": 2,
            "VADD.Q R1, R2, R3": 1,
        }
        for source, line in cases.items():
            with self.subTest(source=source):
                with self.assertRaises(AssemblyError) as ctx:
                    assemble(source)
                self.assertEqual(ctx.exception.line_number, line)
                self.assertIsInstance(ctx.exception, ValueError)


if __name__ == "__main__":
    unittest.main()
