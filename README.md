# bladeoperator

`bladeoperator` holds the logic for running chaos experiments against a
Kubernetes cluster. It uses only the standard library.

It contains:

- **ChaosBlade resources** (`bladeoperator.types`). These are dataclasses for
  the custom resource, its spec and its status. Each has `to_dict()` and
  `from_dict()` to convert to and from plain dictionaries.
- **A reconciler** (`bladeoperator.reconciler`). It moves each ChaosBlade
  resource through its phases: Initial, Initialized, Running or Error,
  Updating, Destroying and Destroyed.
- **An event predicate** (`bladeoperator.predicate`). It decides which create,
  update and delete events are worth reconciling.
- **A pod mutator** (`bladeoperator.mutator`). It injects a FUSE sidecar into
  pods that ask for one through annotations.
- **A fault-injection hook and store** (`bladeoperator.hook`,
  `bladeoperator.faults`). They make file-system operations under a mount
  point fail or slow down on request.
- **An HTTP control server and client** (`bladeoperator.server`,
  `bladeoperator.client`). The server receives fault injections and the
  client sends them.
- **The chaosblade-tool DaemonSet** (`bladeoperator.daemonset`).

## Version

`bladeoperator.version.parse_combined_version(combined, delimiter)` splits a
string of the form `"version,product"` into `(version, product)`. A missing
version defaults to `unknown` and a missing product to `community`. The module
exposes the results as `VERSION` and `PRODUCT`.

## Settings

`bladeoperator.settings.parse_settings(argv)` reads the operator settings from
command-line style arguments into an `OperatorSettings` dataclass:

```python
from bladeoperator.settings import parse_settings

settings = parse_settings([
    "--chaosblade-image-repository", "chaosbladeio/chaosblade-tool",
    "--fuse-server-port", "65534",
    "--daemonset-enable",
])
print(settings.image_repository_for_product())
```

`build_parser()` returns the underlying `argparse` parser.

| Option | Default |
| --- | --- |
| `--log-level` | `info` |
| `--reconcile-count` | 20 |
| `--qps` | 20 |
| `--aliyun-region-id` | empty |
| `--aliyun-environment` | empty |
| `--chaosblade-version` | the package's `VERSION` |
| `--chaosblade-image-repository` | `chaosbladeio/chaosblade-tool` |
| `--chaosblade-image-pull-policy` | `IfNotPresent` |
| `--daemonset-enable` | false |
| `--remove-blade-interval` | `72h` |
| `--fuse-sidecar-image` | empty |
| `--fuse-server-port` | 65534 |
| `--webhook-port` | 9443 |
| `--webhook-enable` | false |

The two boolean options work without a value. They also accept an explicit
value such as `true` or `false`.

`OperatorSettings.image_repository_for_product()` gives the tool image
repository for the configured product:

- For `community` it returns the configured repository.
- For `ahas` it returns `aliyun_image_repository(region_id, environment)`.
- For any other product it raises `ValueError`.

## Injecting the FUSE sidecar

A pod opts in with two annotations:

- `chaosblade/inject-volume`
- `chaosblade/inject-volume-subpath`

The first container of the pod must mount the named volume. The mount must use
`HostToContainer` or `Bidirectional` propagation.

```python
from bladeoperator.mutator import Mutator, MutationError

mutator = Mutator(settings)
try:
    mutator.mutate_pod(pod)   # pod is a plain dict, changed in place
except MutationError as exc:
    print("cannot mutate:", exc)
```

`Mutator.handle(pod)` mutates a copy of the pod and returns an admission-style
response:

- On success it returns `{"allowed": True, "patch": [...]}`, with a JSON patch
  of the container list.
- On failure it returns `{"allowed": False, "status": {...}}`.

`sidecar_image(settings)` gives the sidecar image. This is the
`--fuse-sidecar-image` setting if one is set, otherwise the tool image tagged
with the package version.

## File-system faults

An `InjectMessage` describes one fault. It holds these fields:

- `methods`: the operations it applies to, such as `read` or `write`
- `path`: an optional path prefix
- `delay`: a delay in milliseconds
- `percent`: a percentage of calls to affect
- `errno`: the errno to fail with
- `random`: pick a random errno instead

A `FaultStore` keeps the active faults, one per method. `inject(message)` sets
them, `get(method)` reads one, and `recover()` clears every fault.

```python
from bladeoperator.faults import FaultStore, InjectMessage
from bladeoperator.hook import ChaosbladeHook

store = FaultStore()
store.inject(InjectMessage(methods=["read"], path="/data", errno=28))
hook = ChaosbladeHook("/data", store, None, None)
hook.pre("read", "file.txt")   # raises OSError(28, ...)
```

The hook has three entry points:

- `ChaosbladeHook.inject_fault(relative_path, method)` applies the stored
  fault to a path below the mount point. It returns the resulting `OSError`,
  or `None`.
- `pre(operation, *args)` raises that error. The `release` operation is the
  exception: it only applies any delay.
- `post(operation)` never alters the result.

The `rng` and `sleep` arguments are optional. They let you supply your own
random source and delay function.

## Control server and client

`HookServer(address, store)` exposes a `FaultStore` over HTTP at a
`host:port` address:

- `/inject` takes a JSON inject message. It answers `success`, or `400` if the
  body cannot be decoded.
- `/recover` clears all faults.

`start()` serves the store in a background thread and `stop()` shuts it down.
The server also works as a context manager. `bound_address` reports the
address it is listening on.

`HookClient(address, timeout)` talks to such a server:

- `inject_fault(message)` sends a fault.
- `revoke()` clears the faults.

Both client methods raise `HookClientError` when the server cannot be reached
or does not answer `200`.

## Reconciling experiments

`ReconcileChaosBlade(client, executor)` drives a ChaosBlade resource through
its life cycle. It needs two collaborators:

- `client` follows the `KubeClient` protocol in `bladeoperator.types`. Its
  methods raise `NotFoundError` or `AlreadyExistsError`, both subclasses of
  `ApiError`.
- `executor` follows the `ExperimentExecutor` protocol. It creates and
  destroys the individual experiments.

It offers these entry points:

- `reconcile(name)` moves one resource one step along.
- `finalize(blade)` destroys the experiments of a resource that is being
  deleted.
- `SpecUpdatedPredicate` filters create, update, delete and generic events.
  When the spec changes, it records the old spec in the `preSpec` annotation.
- `clean_up_destroying_blades(client, interval, now)` clears the finalizers of
  resources stuck in the Destroying phase longer than `interval`. It returns
  their names.
- `run_periodic_clean_up(client, interval_text, stop)` does the same every
  interval until the `threading.Event` is set. `parse_duration` parses
  intervals such as `72h` or `1h30m`.
- `deploy_chaosblade_tool(client, settings, namespace)` creates the
  chaosblade-tool DaemonSet, owned by the `chaosblade-operator` deployment. It
  returns `False` if the DaemonSet exists already.

## What the package does not do

- **No command.** The package installs no command-line program.
- **No cluster connection.** `KubeClient` and `ExperimentExecutor` are
  protocols only, so you supply the implementations that talk to a cluster and
  run the experiments.
- **No filesystem.** The package mounts no filesystem. `ChaosbladeHook` has to
  be called from a file-system layer that you provide.
- **No watch loop or admission server.** Nothing watches resources or serves
  admission requests. You feed events to the predicate and reconciler, and
  pods to the mutator, yourself.