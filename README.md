# regroute

Shortest-path queries on road networks whose edges carry labels, where a
route is only acceptable if its sequence of labels matches a regular
expression.

Edge labels are road categories written as a letter `A`–`D` followed by a
level digit (levels above 5 count as 5), such as `A2` or `D1`. Each label
becomes a single letter (`regroute.graph.label_letter`): `A2` is `b`,
`D1` is `p`. A constraint like `A2*D1*A2*` means "any number of `A2`
roads, then any number of `D1` roads, then any number of `A2` roads
again".

## Regular expressions

`regroute.regex` turns an expression into a minimal DFA: label
translation (`translate_labels`), postfix conversion
(`infix_to_postfix`), a Thompson NFA (`build_nfa`), subset construction
(`subset_construction`) and minimisation (`minimize`). `compile_regex`
runs all of them. Malformed expressions raise `RegexSyntaxError`.

```python
from regroute.regex import compile_regex

dfa = compile_regex("A2*D1*A2*")
dfa.accepts("bbbpppppp")   # True
print(dfa.describe())      # states, transitions and transition matrix
```

## Graphs and files

`regroute.graph` reads and writes the data files:

- `read_graph(path)` reads a labelled road network (`p sp <n> <m>` and
  `a <from> <to> <weight> <label>` lines). Each road is listed once per
  direction, so only every other arc is kept. It returns a `RoadGraph`
  with 0-based vertices.
- `read_queries(path)` reads whitespace-separated `source target` pairs.
- `read_order(path, num_vertices)` and `write_order(path, ranks)` read
  and write one contraction rank per vertex.

`regroute.ordering.contraction_order` computes ranks by minimum-degree
elimination, and `EliminationTree` is the tree decomposition built from
them.

## Query methods

All queries take 1-based vertex ids and return `-1` when no matching
route exists.

- **Bidirectional Dijkstra** over the product of the graph and the DFA:

  ```python
  from regroute.dijkstra import ConstrainedSearch
  search = ConstrainedSearch(graph, dfa)
  search.query(1, 42)
  ```

- **LSD**: a tree-decomposition index storing Pareto-minimal
  (label set, distance) pairs. A query is restricted to a set of allowed
  labels, a bit mask such as `allowed_label_mask("A2*D1*A2*")`:

  ```python
  from regroute.lsd import LSDIndex, allowed_label_mask
  index = LSDIndex(graph, ranks)
  index.query(1, 42, allowed_label_mask("A2*D1*A2*"))
  index.save("LSDindex")
  ```

- **PCSP**: a tree-decomposition index of DFA state-to-state distance
  matrices. Distances are integers: edge weights are multiplied by 100
  and truncated.

  ```python
  from regroute.pcsp import PCSPIndex
  from regroute.pruning import build_separator_pruning
  index = PCSPIndex(graph, dfa, ranks)
  pruning = build_separator_pruning(index, alpha=0.94, samples=10_000)
  index.query(1, 42, pruning)
  index.save("PCSPindex", pruning)
  ```

  Separator pruning samples random queries, takes the most frequent
  separators (at most twenty) until their share exceeds `alpha`, and
  marks hop links that can be skipped without changing answers.

When `ranks` is omitted, `LSDIndex` and `PCSPIndex` compute them with
`contraction_order`.

## What the package does not do

There is no command-line program. Loading a dataset, running the query
files, timing them and writing result or record files is left to the
caller, using the functions above.

## Installing

```
pip install .
pip install ".[test]"   # with the test dependencies
pytest
```