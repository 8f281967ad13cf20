from .instruction import AssemblyError, Instruction, assemble
from .processor import PipelinedProcessor
from .system import CardinalSystem
