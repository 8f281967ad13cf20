import streamlit as st
from cardinal.instruction import AssemblyError, Instruction
from cardinal.system import CardinalSystem

st.set_page_config(page_title="Cardinal CPU Simulator", layout="wide")
st.title("Cardinal CPU Pipeline Simulator")

# --- Session State Initialization ---
if 'system' not in st.session_state:
    st.session_state.system = None
    st.session_state.sim_started = False
    st.session_state.sim_finished = False

# --- Sidebar: Hardware Config ---
st.sidebar.header("Hardware Configuration")
imem_size = st.sidebar.number_input("Instruction memory (bytes)", min_value=64, value=1024, step=64)
dmem_size = st.sidebar.number_input("Data memory (doublewords)", min_value=16, value=256, step=16)
router_ready = st.sidebar.checkbox("Router ready", value=True)

# --- Program Input ---
st.header("1. Load Assembly Program")
prog_source = st.radio("Input Method", ["Paste", "Upload File"])
if prog_source == "Paste":
    program = st.text_area("Paste your assembly program here (labels supported):", height=200)
else:
    uploaded = st.file_uploader("Upload .asm file", type=["asm", "txt"])
    program = uploaded.read().decode() if uploaded else ''

# --- Simulation Controls ---
st.header("2. Simulation Controls")
col1, col2, col3, col4 = st.columns(4)
if col1.button("Initialize/Reset"):
    system = CardinalSystem(imem_size=int(imem_size), dmem_size=int(dmem_size))
    try:
        system.load_program(program)
    except AssemblyError as e:
        st.error(f"Assembly failed: {e}")
    else:
        st.session_state.system = system
        st.session_state.sim_started = True
        st.session_state.sim_finished = False
        st.success("Simulation initialized.")

system = st.session_state.system
if system is not None:
    system.router_ready = router_ready

if col2.button("Step") and st.session_state.sim_started and not st.session_state.sim_finished:
    system.run_cycle()
    st.session_state.sim_finished = system.is_simulation_complete()

if col3.button("Run to Completion") and st.session_state.sim_started and not st.session_state.sim_finished:
    system.run_simulation(max_cycles=1000)
    st.session_state.sim_finished = True

if col4.button("Reset State"):
    st.session_state.system = None
    st.session_state.sim_started = False
    st.session_state.sim_finished = False

packet = st.text_input("Inject packet from router (hex)", value="")
if st.button("Inject") and system is not None and packet:
    try:
        system.inject_packet(int(packet, 16))
    except ValueError:
        st.error(f"Not a hex value: {packet!r}")

# --- Display State ---
if system is not None and st.session_state.sim_started:
    state = system.cpu.state
    st.subheader(f"Cycle: {system.current_cycle}   PC: {state.pc:#06x}   "
                 f"Stall: {system.cpu.stall}   Polarity: {system.polarity.value}")

    st.write("### Pipeline Latches")
    st.dataframe([
        {"Latch": "IF_ID", "Contents": str(Instruction.decode(state.if_id.word)) if state.if_id.valid else "bubble"},
        {"Latch": "ID_EXMEM", "Contents": str(Instruction.decode(state.id_exmem.word)),
         "Op A": f"{state.id_exmem.op_a:016x}", "Op B": f"{state.id_exmem.op_b:016x}",
         "Class": state.id_exmem.stall_class.name},
        {"Latch": "EXMEM_WB", "Contents": f"R{state.exmem_wb.rd} <- {state.exmem_wb.value:016x}"
         if state.exmem_wb.write_enable else "bubble"},
    ])

    st.write("### Register File")
    reg_data = []
    for i, val in system.dump_registers():
        reg_data.append({"Register": f"R{i}", "Value": f"{val:016x}"})
    st.dataframe(reg_data)

    st.write("### Network Interface")
    st.dataframe([
        {"Buffer": "in", "Full": system.nic.in_buffer.full, "Payload": f"{system.nic.in_buffer.payload:016x}"},
        {"Buffer": "out", "Full": system.nic.out_buffer.full, "Payload": f"{system.nic.out_buffer.payload:016x}"},
    ])
    st.write("Sent packets:", [f"cycle {c}: {p:016x}" for c, p in system.sent_packets])

    st.write("### Data Memory (addresses 0-39)")
    st.dataframe([{"Address": addr, "Value": f"{value:016x}"} for addr, value in system.dmem.dump(0, 40)])

    st.write("### Trace")
    trace_data = []
    for entry in system.trace:
        trace_data.append({"Cycle": entry.cpu.cycle, "PC": f"{entry.cpu.pc:#06x}", "ID": entry.cpu.decoded,
                           "Stall": entry.cpu.stall, "Branch": entry.cpu.branch_taken,
                           "Forwarded": ", ".join(f"R{r}" for r in entry.cpu.forwarded),
                           "Send": entry.nic.send})
    st.dataframe(trace_data)

    if st.session_state.sim_finished:
        st.success("Simulation finished.")
