# matchcore

Building blocks for a matchmaking service:

- `matchcore.matchfunction`: a harness that gathers the tickets for every pool
  of a match profile and runs your match function over them.
- `matchcore.evaluator`: a harness that runs your evaluator over proposed
  matches.
- `matchcore.probe`: a WSGI health check for liveness and readiness probes.
- `matchcore.telemetry`: named counters with a Prometheus-style text rendering,
  and a duration parser.
- `matchcore.multiclose`: `MultiClose`, to run several shutdown callbacks in
  order.
- `matchcore.listener`: `ListenerHolder`, to reserve a TCP port and hand the
  socket off exactly once.
- `matchcore.structs`: builders for `google.protobuf.Struct` values.
- `matchcore.reaper` and the `matchcore-reaper` command: delete labelled GKE
  clusters left behind by CI once they are older than a given age.

## Installation

```
pip install .
```

To run the tests:

```
pip install ".[test]"
pytest
```

## Usage

### Shutting down several resources

```python
from matchcore.multiclose import MultiClose

closer = MultiClose()
closer.add_close_func(flush_metrics)             # exceptions propagate from close()
closer.add_close_with_error_func(stop_exporter)  # exceptions are logged as warnings
closer.close()  # runs every callback in the order added, then forgets them
```

`MultiClose` is also a context manager that calls `close()` on exit.

### Protobuf struct values

```python
from matchcore.structs import Struct, List, number, string, bool_value, null

properties = Struct({"level": number(5), "mode": string("ranked")}).to_struct()
tags = List([string("eu"), bool_value(True), null()]).to_value()
```

`List.to_list_value()` gives a `ListValue`, `Struct.to_struct()` a `Struct`,
and `to_value()` on either wraps the result in a `Value`.

### Reserving a port

```python
from matchcore.listener import new_from_port_number, must_listen

holder = new_from_port_number(0)   # 0 picks any free port; must_listen() does the same
print(holder.number, holder.addr_string)
sock = holder.obtain()             # a second call raises ListenerHandedOffError
```

`close()` closes the socket only if it has not been handed off.

### Health checks

`new_health_check` takes a list of probes: callables taking no arguments that
raise an exception when the service is not ready. The returned `HealthCheck`
is a WSGI application. A request without a query string is a liveness check
and always answers `200 ok`. A request with a query string (for example
`/healthz?readiness=true`) runs every probe; if one raises, it answers `503`
with the error text, otherwise `200 ok`. The `state` property holds the
`HealthState` (`FIRST_PROBE`, `HEALTHY`, `UNHEALTHY`) left by the last
readiness check, and `check(query)` returns the status and body directly.

```python
from wsgiref.simple_server import make_server
from matchcore.probe import new_health_check

app = new_health_check([check_database])
make_server("", 8080, app).serve_forever()
```

`new_always_ready_health_check()` returns a check with no probes.

### Counters

```python
from matchcore.telemetry import counter, increment_counter, increment_counter_n

tickets_created = counter("frontend/tickets_created", "tickets created")
increment_counter(tickets_created)
increment_counter_n(tickets_created, 3)
```

A counter counts recordings: each call to `increment_counter` or
`increment_counter_n` adds one, whatever `n` is. Registering the same name
twice returns the same `Measure`. These functions use a module-wide
`MetricsRegistry`; you can also create your own and use its `counter`,
`record`, `value` and `render` methods. A registry is a WSGI application that
serves `render()`.

`setup(config)` reads a flat mapping of dotted keys. `telemetry.reportingPeriod`
is parsed with `parse_duration` (for example `"30s"` or `"1h30m"`; invalid
values fall back to one minute). If `telemetry.prometheus.enable` is true, the
returned dict maps `telemetry.prometheus.endpoint` to the module-wide registry,
ready to be mounted by your own WSGI router.

### Match function and evaluator harnesses

Write a match function that takes `MatchFunctionParams` (a logger, the profile
name, its properties, its rosters and the tickets of each pool keyed by pool
name) and returns a list of `Match` objects. Wrap it in `FunctionSettings` and
build a `MatchFunctionService` with a client whose `query_tickets(pool)`
returns pages of `Ticket` objects:

```python
from matchcore.matchfunction import FunctionSettings, MatchFunctionService

service = MatchFunctionService(FunctionSettings(func=make_matches), mmlogic_client)
proposals = service.run(profile)
```

A failure while gathering tickets is raised as `HarnessAbortedError`;
exceptions from the match function itself propagate unchanged.

An evaluator takes `EvaluatorParams` (a logger and the matches) and returns
the accepted matches. `EvaluatorService(evaluate).evaluate(matches)` runs it
and raises `HarnessAbortedError` if it fails.

## Cluster reaper

The reaper lists the clusters in a project and location through the GKE REST
API, and deletes those that carry the required label and were created longer
ago than the given age.

```
matchcore-reaper --project my-ci-project --location us-west1-a --label open-match-ci --age 1h
```

Defaults are project `open-match-build`, location `us-west1-a`, label
`open-match-ci` and age `1h`. Requests are authorised with the bearer token in
the `GOOGLE_OAUTH_ACCESS_TOKEN` environment variable, if set.

When the `PORT` environment variable holds a positive integer, or it is unset
and `--port` is positive, the command serves HTTP instead of running once:

- `/livenessz` answers `OK`
- `/reap` runs a reaping pass and answers `OK: <result>` or `500 ERROR: <error>`
- `/close` shuts the server down

From Python, `reap_clusters(params, client)`, `is_orphaned`, `serve` and
`make_server` in `matchcore.reaper` do the same work.

## What this package does not do

The harnesses are plain Python objects: there is no gRPC or HTTP server that
exposes the match function or evaluator, no client for a matchmaking logic
service, and no ticket storage. Telemetry covers counters only; there are no
tracing exporters. The reaper does not obtain Google Cloud credentials by
itself beyond reading an access token from the environment.