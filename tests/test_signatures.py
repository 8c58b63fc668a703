"""Tests for src/hexdocs_mcp/signatures.py."""

from hexdocs_mcp.models import OptionEntry
from hexdocs_mcp.signatures import (
    extract_code_blocks,
    extract_signatures,
    parse_callbacks,
    parse_option_field,
    parse_specs,
    parse_type_names,
    parse_type_options,
)

WORKER_DOC = """# MyLib.Worker

A supervised worker.

## Types

```elixir
@type start_opts() :: %{
  required(:name) => atom(),
  optional(:timeout) => timeout(), # ms
  pool_size: pos_integer()
}
```

```elixir
@type t() :: %__MODULE__{}
```

## Callbacks

```elixir
@callback init(term()) :: {:ok, term()}
```

## Functions

### start_link(opts)

```elixir
@spec start_link(start_opts()) :: GenServer.on_start()
```

Starts the worker.
"""


def _fence(code: str) -> str:
    return f"```elixir\n{code}\n```"


class TestCodeBlocks:
    def test_extracts_contents_without_fences(self):
        md = "text\n```elixir\na = 1\n```\nmore\n```\nb = 2\n```"
        assert extract_code_blocks(md) == ["a = 1\n", "b = 2\n"]

    def test_no_blocks(self):
        assert extract_code_blocks("@spec foo(bar) :: :ok") == []


class TestOptionFields:
    def test_optional(self):
        assert parse_option_field("optional(:a) => integer()") == OptionEntry(
            key=":a", required=False, type="integer()"
        )

    def test_required(self):
        assert parse_option_field("required(:name) => atom()") == OptionEntry(
            key=":name", required=True, type="atom()"
        )

    def test_atom_arrow(self):
        assert parse_option_field(":log => boolean()") == OptionEntry(
            key=":log", required=True, type="boolean()"
        )

    def test_keyword_shorthand(self):
        assert parse_option_field("port: :inet.port_number()") == OptionEntry(
            key=":port", required=True, type=":inet.port_number()"
        )

    def test_whitespace_collapsed(self):
        field = parse_option_field("optional(:prefix) =>\n    String.t()\n    | nil")
        assert field.type == "String.t() | nil"

    def test_unrecognised(self):
        assert parse_option_field("String.t()") is None
        assert parse_option_field("   ") is None


class TestTypeOptions:
    def test_type_prefix_is_optional(self):
        assert parse_type_options(_fence("opts() :: %{optional(:a) => integer()}")) == {
            "opts": [OptionEntry(key=":a", required=False, type="integer()")]
        }

    def test_multi_line_map(self):
        options = parse_type_options(WORKER_DOC)
        assert options == {
            "start_opts": [
                OptionEntry(key=":name", required=True, type="atom()"),
                OptionEntry(key=":timeout", required=False, type="timeout()"),
                OptionEntry(key=":pool_size", required=True, type="pos_integer()"),
            ]
        }

    def test_single_line_map_with_nested_commas(self):
        md = _fence("@type conn_opts() :: %{host: String.t(), tags: %{atom() => {integer(), term()}}}")
        options = parse_type_options(md)
        assert [o.key for o in options["conn_opts"]] == [":host", ":tags"]
        assert options["conn_opts"][1].type == "%{atom() => {integer(), term()}}"

    def test_empty_map_not_recorded(self):
        assert parse_type_options(_fence("@type empty_opts() :: %{}")) == {}

    def test_later_declaration_wins(self):
        md = _fence("@type o() :: %{a: integer()}") + "\n\n" + _fence("@type o() :: %{b: atom()}")
        assert [o.key for o in parse_type_options(md)["o"]] == [":b"]

    def test_outside_code_blocks_ignored(self):
        assert parse_type_options("opts() :: %{optional(:a) => integer()}") == {}


class TestSpecs:
    def test_spec_linked_to_opts_type(self):
        specs = parse_specs(WORKER_DOC)
        assert specs["start_link"].spec == "@spec start_link(start_opts()) :: GenServer.on_start()"
        assert specs["start_link"].opts_type == "start_opts"

    def test_multi_line_spec(self):
        md = _fence(
            "@spec insert(\n"
            "        Ecto.Schema.t() | Ecto.Changeset.t(),\n"
            "        insert_opts()\n"
            "      ) :: {:ok, Ecto.Schema.t()} | {:error, Ecto.Changeset.t()}"
        )
        spec = parse_specs(md)["insert"]
        assert spec.spec == (
            "@spec insert( Ecto.Schema.t() | Ecto.Changeset.t(), insert_opts() ) "
            ":: {:ok, Ecto.Schema.t()} | {:error, Ecto.Changeset.t()}"
        )
        assert spec.opts_type == "insert_opts"

    def test_spec_without_opts(self):
        spec = parse_specs(_fence("@spec valid?(term()) :: boolean()"))["valid?"]
        assert spec.opts_type is None

    def test_later_spec_wins(self):
        md = _fence("@spec get(id) :: term()\n@spec get(id, get_opts()) :: term() | nil")
        assert parse_specs(md)["get"].opts_type == "get_opts"

    def test_unbalanced_spec_ignored(self):
        assert parse_specs(_fence("@spec broken(")) == {}

    def test_prose_ignored(self):
        assert parse_specs("Use @spec foo(bar) :: :ok to document.") == {}


def test_callbacks():
    md = _fence(
        "@callback init(term()) :: {:ok, term()}\n"
        "@macrocallback __using__(keyword()) :: Macro.t()"
    )
    assert parse_callbacks(md) == {"init", "__using__"}


def test_type_names():
    md = _fence(
        "@type t() :: %__MODULE__{}\n"
        "@opaque handle :: reference()\n"
        "@typep internal(a) :: [a]"
    )
    assert parse_type_names(md) == {"t", "handle", "internal"}


def test_type_names_include_unprefixed_option_maps():
    md = _fence("opts() :: %{optional(:a) => integer()}")
    assert parse_type_names(md) == {"opts"}


def test_extract_signatures():
    sig = extract_signatures(WORKER_DOC)
    assert set(sig.options) == {"start_opts"}
    assert set(sig.specs) == {"start_link"}
    assert sig.callbacks == {"init"}
    assert sig.type_names == {"start_opts", "t"}
