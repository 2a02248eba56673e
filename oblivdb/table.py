"""Plain and secret-shared tables, and the query description used to join them."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import IntEnum
from typing import Iterable, List, Optional, Sequence, Tuple


class QueryError(RuntimeError):
    """Raised when a select query is built in an invalid way."""


class TypeID(IntEnum):
    INT = 0
    STRING = 1


class DataType(ABC):
    """The type of a column: its kind and width in bits."""

    @property
    @abstractmethod
    def type_id(self) -> TypeID:
        ...

    @property
    @abstractmethod
    def bit_count(self) -> int:
        ...


class IntType(DataType):
    def __init__(self, bit_count: int):
        if bit_count < 0:
            raise ValueError("bit count must not be negative")
        self._bit_count = bit_count

    @property
    def type_id(self) -> TypeID:
        return TypeID.INT

    @property
    def bit_count(self) -> int:
        return self._bit_count

    def __repr__(self) -> str:
        return f"IntType({self._bit_count})"


class StringType(DataType):
    def __init__(self, bit_count: int):
        if bit_count < 0 or bit_count % 8:
            raise ValueError("string bit count must be a non-negative multiple of 8")
        self.char_count = bit_count // 8

    @property
    def type_id(self) -> TypeID:
        return TypeID.STRING

    @property
    def bit_count(self) -> int:
        return self.char_count * 8

    def __repr__(self) -> str:
        return f"StringType({self.bit_count})"


def make_type(type_id: TypeID, size: int) -> DataType:
    if type_id == TypeID.INT:
        return IntType(size)
    if type_id == TypeID.STRING:
        return StringType(size)
    raise ValueError(f"unknown type id {type_id!r}")


def _words(bit_count: int) -> int:
    return (bit_count + 63) // 64


class _ColumnBase:
    type: Optional[DataType]
    name: str

    @property
    def bit_count(self) -> int:
        if self.type is None:
            raise ValueError("column has no type")
        return self.type.bit_count

    @property
    def byte_count(self) -> int:
        return (self.bit_count + 7) // 8

    @property
    def type_id(self) -> TypeID:
        if self.type is None:
            raise ValueError("column has no type")
        return self.type.type_id


class Column(_ColumnBase):
    """A plaintext column; each row is a list of 64-bit words."""

    def __init__(self, name: str, type_id: TypeID, size: int):
        self.name = name
        self.type = make_type(type_id, size)
        self.data: List[List[int]] = []

    @property
    def rows(self) -> int:
        return len(self.data)


class SharedColumn(_ColumnBase):
    """A column held as two XOR shares, each a list of rows of 64-bit words."""

    def __init__(self, name: str = "", type_id: Optional[TypeID] = None, size: int = 0):
        self.name = name
        self.type = None if type_id is None else make_type(type_id, size)
        self.shares: Tuple[List[List[int]], List[List[int]]] = ([], [])
        self._bits = size if type_id is not None else 0

    @property
    def rows(self) -> int:
        return len(self.shares[0])

    @property
    def i64_cols(self) -> int:
        return _words(self._bits)

    def resize(self, rows: int, bit_count: int) -> None:
        """Set the shape, keeping what fits of the existing shares and zero-filling the rest."""
        if rows < 0 or bit_count < 0:
            raise ValueError("rows and bit count must not be negative")
        width = _words(bit_count)
        mask = (1 << bit_count) - 1 if bit_count % 64 else None
        resized = []
        for share in self.shares:
            new_share = []
            for i in range(rows):
                old = share[i] if i < len(share) else []
                row = (list(old[:width]) + [0] * width)[:width]
                if mask is not None and row:
                    row[-1] &= (1 << (bit_count % 64)) - 1
                new_share.append(row)
            resized.append(new_share)
        self.shares = (resized[0], resized[1])
        self._bits = bit_count


ColumnInfo = Tuple[str, TypeID, int]


class Table:
    """A plaintext table; every column holds ``rows`` zero-initialised rows."""

    def __init__(self, rows: int = 0, columns: Optional[Iterable[ColumnInfo]] = None):
        self.columns: List[Column] = []
        for name, type_id, size in columns or ():
            column = Column(name, type_id, size)
            column.data = [[0] * _words(size) for _ in range(rows)]
            self.columns.append(column)

    def rows(self) -> int:
        return self.columns[0].rows if self.columns else 0


@dataclass(frozen=True, eq=False)
class ColRef:
    """A reference to one column of a particular shared table."""

    table: "SharedTable"
    col: SharedColumn


class SharedTable:
    """A table of secret-shared columns."""

    def __init__(self, columns: Optional[Sequence[SharedColumn]] = None):
        self.columns: List[SharedColumn] = list(columns or ())

    def __getitem__(self, name: str) -> ColRef:
        for column in self.columns:
            if column.name == name:
                return ColRef(self, column)
        raise KeyError(name)

    def rows(self) -> int:
        return self.columns[0].rows if self.columns else 0


class SelectOp(IntEnum):
    BITWISE_OR = 0
    BITWISE_AND = 1
    MULTIPLY = 2
    ADD = 3
    LESS_THAN = 4
    INVERSE = 5


@dataclass(eq=False)
class Gate:
    op: SelectOp
    in1: int
    in2: int = -1
    out: int = -1


@dataclass(eq=False)
class Mem:
    type: Optional[DataType] = None
    gate: Optional[Gate] = None
    input_idx: int = -1
    output_idx: int = -1
    idx: int = -1
    used: bool = False

    @property
    def is_input(self) -> bool:
        return self.input_idx != -1

    @property
    def is_output(self) -> bool:
        return self.output_idx != -1


@dataclass(eq=False)
class Input:
    mem_idx: int
    col: ColRef
    position: int


@dataclass(eq=False)
class Output:
    mem_idx: int
    name: str
    position: int


@dataclass(frozen=True, eq=False)
class SelectBundle:
    """A value in a select query; operators on bundles add gates to the query."""

    select: "SelectQuery"
    mem_idx: int

    def _binary(self, op: SelectOp, other: "SelectBundle") -> "SelectBundle":
        return SelectBundle(self.select, self.select.add_op(op, self.mem_idx, other.mem_idx))

    def __invert__(self) -> "SelectBundle":
        return SelectBundle(self.select, self.select.add_op(SelectOp.INVERSE, self.mem_idx))

    def __or__(self, other: "SelectBundle") -> "SelectBundle":
        return self._binary(SelectOp.BITWISE_OR, other)

    def __and__(self, other: "SelectBundle") -> "SelectBundle":
        return self._binary(SelectOp.BITWISE_AND, other)

    def __lt__(self, other: "SelectBundle") -> "SelectBundle":
        return self._binary(SelectOp.LESS_THAN, other)

    def __mul__(self, other: "SelectBundle") -> "SelectBundle":
        return self._binary(SelectOp.MULTIPLY, other)

    def __add__(self, other: "SelectBundle") -> "SelectBundle":
        return self._binary(SelectOp.ADD, other)


@dataclass(eq=False)
class SelectQuery:
    """Describes a join of two shared tables and the columns computed from it."""

    no_reveal_name: str = ""
    is_union: bool = False
    left_table: Optional[SharedTable] = None
    right_table: Optional[SharedTable] = None
    left_col: Optional[SharedColumn] = None
    right_col: Optional[SharedColumn] = None
    mem: List[Mem] = field(default_factory=list)
    inputs: List[Input] = field(default_factory=list)
    outputs: List[Output] = field(default_factory=list)
    gates: List[Gate] = field(default_factory=list)
    left_inputs: List[Input] = field(default_factory=list)
    right_inputs: List[Input] = field(default_factory=list)

    def _require_join(self) -> None:
        if self.left_table is None:
            raise QueryError("call join_on(...) first")

    def add_input(self, column: ColRef) -> SelectBundle:
        self._require_join()
        if column.table is self.left_table:
            side = self.left_inputs
        elif column.table is self.right_table:
            side = self.right_inputs
        else:
            raise QueryError("input column belongs to neither joined table")

        mem = Mem(type=column.col.type, idx=len(self.mem), input_idx=len(self.inputs))
        self.mem.append(mem)
        inp = Input(mem_idx=mem.idx, col=column, position=len(self.inputs))
        self.inputs.append(inp)
        side.append(inp)
        return SelectBundle(self, mem.idx)

    def join_on(self, left: ColRef, right: ColRef) -> SelectBundle:
        if self.left_table is not None:
            raise QueryError("join_on may be called only once")
        self.left_table = left.table
        self.right_table = right.table
        self.left_col = left.col
        self.right_col = right.col
        bundle = self.add_input(left)
        self.mem[-1].used = True
        self.add_input(right)
        return bundle

    def _check_wire(self, wire: int) -> None:
        if not 0 <= wire < len(self.mem):
            raise QueryError(f"wire {wire} does not exist")

    def add_op(self, op: SelectOp, wire1: int, wire2: Optional[int] = None) -> int:
        """Add a gate and return the index of its output value."""
        self._require_join()
        if wire2 is None:
            if op != SelectOp.INVERSE:
                raise QueryError(f"{op.name} needs two operands")
            self._check_wire(wire1)
            self.mem[wire1].used = True
            gate = Gate(op=op, in1=wire1, out=len(self.mem))
            out_type = self.mem[wire1].type
        else:
            self._check_wire(wire1)
            self._check_wire(wire2)
            first, second = self.mem[wire1], self.mem[wire2]
            if op in (SelectOp.BITWISE_OR, SelectOp.BITWISE_AND):
                if first.type.bit_count != second.type.bit_count:
                    raise QueryError("bitwise operands must have the same bit count")
                out_type = first.type
            elif op == SelectOp.LESS_THAN:
                out_type = IntType(1)
            elif op in (SelectOp.MULTIPLY, SelectOp.ADD):
                out_type = first.type
            else:
                raise QueryError(f"{op.name} takes one operand")
            first.used = True
            second.used = True
            gate = Gate(op=op, in1=wire1, in2=wire2, out=len(self.mem))

        self.gates.append(gate)
        mem = Mem(type=out_type, gate=gate, idx=len(self.mem))
        self.mem.append(mem)
        return mem.idx

    def add_output(self, name: str, column: SelectBundle) -> None:
        self._require_join()
        mem = self.mem[column.mem_idx]
        output = Output(mem_idx=mem.idx, name=name, position=-1)
        self.outputs.append(output)
        mem.output_idx = len(self.outputs) - 1

        position = -1
        if not self.is_left_passthrough(output):
            position = max(
                (o.position for o in self.outputs if not self.is_left_passthrough(o)),
                default=-1,
            ) + 1
        output.position = position

    def no_reveal(self, column_name: str) -> None:
        self.no_reveal_name = column_name

    def is_no_reveal(self) -> bool:
        return bool(self.no_reveal_name)

    def _input_table(self, output: Output) -> Optional[SharedTable]:
        mem = self.mem[output.mem_idx]
        if not mem.is_input:
            return None
        return self.inputs[mem.input_idx].col.table

    def is_left_passthrough(self, output: Output) -> bool:
        table = self._input_table(output)
        return table is not None and table is self.left_table

    def is_right_passthrough(self, output: Output) -> bool:
        table = self._input_table(output)
        return table is not None and table is self.right_table

    def is_circuit_input(self, inp: Input) -> bool:
        return inp.col.table is self.right_table or self.mem[inp.mem_idx].used