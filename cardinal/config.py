# Cardinal CPU Configuration

# General Configuration
NUM_REGISTERS = 32  # R0-R31, R0 is always 0
REGISTER_WIDTH_BITS = 64
INSTRUCTION_BYTES = 4  # PC stride
PC_WIDTH_BITS = 32  # pc wraps at this width

# Memory Configuration
# Instruction memory is byte addressed, data memory holds 64-bit doublewords.
# Both can be overridden at runtime using set_memory_depths().
IMEM_SIZE_BYTES = 1024
DMEM_SIZE_WORDS = 256

# Immediate addresses whose top two bits match this prefix go to the NIC
NIC_ADDRESS_PREFIX = 0b11

# Opcodes (instruction bits 31..26)
OPCODE_ALU = 0b101010
OPCODE_LOAD = 0b100000
OPCODE_STORE = 0b100001
OPCODE_BEZ = 0b100010
OPCODE_BNEZ = 0b100011
OPCODE_NOP = 0b111100

# ALU function codes (instruction bits 5..0)
ALU_FUNCTIONS = {
    "VAND":   0b000001,
    "VOR":    0b000010,
    "VXOR":   0b000011,
    "VNOT":   0b000100,
    "VMOV":   0b000101,
    "VADD":   0b000110,
    "VSUB":   0b000111,
    "VMULEU": 0b001000,
    "VMULOU": 0b001001,
    "VSLL":   0b001010,
    "VSRL":   0b001011,
    "VSRA":   0b001100,
    "VRTTH":  0b001101,
    "VDIV":   0b001110,
    "VMOD":   0b001111,
    "VSQEU":  0b010000,
    "VSQOU":  0b010001,
    "VSQRT":  0b010010,
}

# Latency class for each ALU function: total cycles spent in EXMEM.
# Anything not listed here completes in a single cycle.
ALU_LATENCY = {
    "VADD": 3, "VSUB": 3, "VSLL": 3, "VSRL": 3, "VSRA": 3, "VRTTH": 3,
    "VMULEU": 4, "VMULOU": 4, "VMOD": 4, "VSQEU": 4, "VSQOU": 4,
    "VDIV": 5, "VSQRT": 5,
}

# Loads and stores spend this many cycles in EXMEM
MEMORY_LATENCY = 2

def set_memory_depths(imem_bytes: int = None, dmem_words: int = None):
    """
    Override the default memory sizes.
    Example usage:
        import cardinal.config as config
        config.set_memory_depths(imem_bytes=4096)
    """
    global IMEM_SIZE_BYTES, DMEM_SIZE_WORDS
    if imem_bytes is not None:
        IMEM_SIZE_BYTES = imem_bytes
    if dmem_words is not None:
        DMEM_SIZE_WORDS = dmem_words
