# bladeop

`bladeop` holds the moving parts of a chaos-experiment operator for container
clusters. It describes experiments as data, drives them through their life
cycle, prepares pods for file-system fault injection, and provides the fault
hooks, HTTP control server and client used for file-system faults. It has no
dependencies outside the standard library.

## What is inside

| Module | Purpose |
| --- | --- |
| `bladeop.version` | `parse_combined_version` splits a `version,product` string; `check_version_has_cri_command` tells whether a tool version is at least 1.5.0. `VERSION` and `PRODUCT` come from the `BLADEOP_COMBINED_VERSION` environment variable, defaulting to `unknown` and `community`. |
| `bladeop.types` | The experiment resource as dataclasses: `ChaosBlade`, `ChaosBladeList`, `ChaosBladeSpec`, `ExperimentSpec`, `FlagSpec`, `ChaosBladeStatus`, `ExperimentStatus`, `ResourceStatus`, the `ClusterPhase` enum, `to_dict`/`from_dict` conversions, and `create_success_experiment_status`, `create_fail_experiment_status`, `create_destroyed_experiment_status`, `create_fail_res_statuses`. |
| `bladeop.settings` | The `Settings` dataclass, `build_parser()` and `parse_settings(argv)` for the operator flags, and the image repository per product (`Settings.image_repo`, `image_repo_for_aliyun`, `image_repo_for_community`). |
| `bladeop.faults` | `InjectMessage`, the `FaultRegistry` mapping operation names to active faults, `DEFAULT_HOOK_POINTS`, and the `/inject` and `/recover` paths. |
| `bladeop.hook` | `ChaosbladeHook`, which applies a registered fault to a file operation: delays it and/or raises `OSError` with an errno. |
| `bladeop.server` | `HookServer`, a threaded HTTP server with `/inject` and `/recover` endpoints. |
| `bladeop.client` | `HookClient`, which talks to a `HookServer` and raises `HookClientError` on failure. |
| `bladeop.mutator` | The admission `Mutator` that adds the fuse sidecar to annotated pods, and `get_sidecar_image`. |
| `bladeop.predicate` | `SpecUpdatedPredicate`, which filters create, update, delete and generic events. |
| `bladeop.daemonset` | Manifest builders for the tool DaemonSet and `deploy_chaosblade_tool`. |
| `bladeop.reconciler` | `ChaosBladeReconciler`, `parse_duration`, `contains`, `remove`. |
| `bladeop.pod_actions` | Pod helpers: `is_pod_ready`, `get_container_port`, `hook_address`, `build_inject_message`, `fail_pod`, `is_annotation_exist`, `pod_identifier`. |

## Experiment life cycle

A resource moves through the phases of `ClusterPhase`:

```
Initial -> Initialized -> Running / Error -> Updating -> Destroying -> Destroyed
```

`ChaosBladeReconciler(client, executor).reconcile(name)` takes one step:

- in `Initial`, it adds the `finalizer.chaosblade.io` finalizer, or, if it is
  already there, moves to `Initialized`;
- in `Initialized` or `Updating`, it asks the executor to create every
  experiment; the phase becomes `Running` if any succeeded, `Error` otherwise;
- in `Running` or `Error`, it reads the previous spec from the `preSpec`
  annotation (set by `SpecUpdatedPredicate.update` when the spec changes),
  destroys the old experiments and moves to `Updating`, or to `Destroying`
  if a destroy failed;
- when the resource is being deleted or is `Destroying`, `finalize` destroys
  the experiments and moves to `Destroyed`, raising `RuntimeError` if that
  did not finish;
- in `Destroyed`, it removes the finalizer.

`clean_up_destroying(interval, now)` clears the finalizers of resources that
have been `Destroying` for longer than `interval` since their deletion
timestamp, and returns their names. The default interval setting is `72h`;
`parse_duration` turns such strings into a `timedelta`.

The `client` and `executor` are objects you supply: the client needs `get`,
`update`, `update_status`, `list` and `patch`; the executor needs `create`
and `destroy`.

## Examples

```python
from bladeop.version import parse_combined_version, check_version_has_cri_command

parse_combined_version("1.7.4,community", ",")   # ("1.7.4", "community")
check_version_has_cri_command("1.7.4")           # True
check_version_has_cri_command("1.4.0")           # False
```

```python
from bladeop.types import create_success_experiment_status, create_fail_experiment_status

ok = create_success_experiment_status([])
failed = create_fail_experiment_status("see resStatuses for details", [])
print(ok.to_dict(), failed.to_dict())
```

```python
from bladeop.settings import parse_settings

settings = parse_settings(["--chaosblade-image-repository", "example/tool", "--webhook-enable"])
settings.image_repo()   # "example/tool" for the community product
```

## Pod sidecar injection

`Mutator.mutate(pod)` works on a pod given as a dict. If the pod carries the
`chaosblade/inject-volume` and `chaosblade/inject-volume-subpath`
annotations, the named volume mount of the first container must use
`HostToContainer` or `Bidirectional` propagation; otherwise `MutationError`
is raised. The pod's containers become the `chaosblade-fuse` sidecar
followed by the first container. `Mutator.handle(pod)` accepts a dict or
JSON text and returns an `AdmissionResponse` with a JSON patch.

## File-system faults

A fault is an `InjectMessage`: the operation names it applies to, an
optional path prefix, a delay in milliseconds, a percentage of calls to
affect, a fixed errno or a random one. `HookServer` stores posted messages
in a `FaultRegistry`; a request to `/recover` removes the faults of every
name in `DEFAULT_HOOK_POINTS`. `ChaosbladeHook.inject_fault(path, method)`
consults the registry, sleeps for any delay and raises `OSError` when the
call is to fail; `pre_hook` returns that error instead of raising, and
`pre_release` never fails.

```python
from bladeop.client import HookClient
from bladeop.faults import InjectMessage
from bladeop.server import HookServer

with HookServer("127.0.0.1:0") as server:
    host, port = server.server_address
    client = HookClient(f"{host}:{port}")
    client.inject_fault(InjectMessage(methods=["read"], errno=5))
    client.revoke()
```

## What this package does not do

There is no operator command or process here: nothing connects to a cluster
API, watches resources or runs the reconciler on a schedule, and there is no
HTTPS admission webhook server. The reconciler, predicate, mutator and
DaemonSet deployment work on objects and clients that the caller provides.
`ChaosbladeHook` holds the fault decisions only; mounting a FUSE file system
that calls it is left to the caller. The experiment executor for node,
container and OS-level experiments is not included.

## Running the tests

Install the `test` extra and run `pytest`.