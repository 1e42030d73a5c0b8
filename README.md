# zfsexporter

A Prometheus exporter for ZFS. It runs the `zpool` and `zfs` command-line
tools and serves pool and dataset properties as metrics over HTTP.

## Installation

```
pip install .
```

The host must have the ZFS userland tools (`zpool`, `zfs`) on its `PATH`,
with support for `--json` output (`zfs version --json` and
`zpool status --json --json-int` are run at start-up).

## Running

```
zfs-exporter
```

On start-up the exporter logs the ZFS userland version; the status of every
pool and its vdevs is logged at debug level. If the version cannot be read
the command exits with status 7, and if the pool status cannot be read it
exits with status 8. It then listens on `:9134`. Metrics are served at
`/metrics`, and a small landing page at `/` links to them (unless the
metrics path is itself `/`). Any other path answers 404.

Options (see `zfs-exporter --help` for the full list):

- `--web.telemetry-path PATH` — where metrics are served (default `/metrics`).
- `--web.listen-address ADDR` — `host:port` to listen on; repeat to listen
  on several addresses (default `:9134`).
- `--web.disable-exporter-metrics` — leave out the per-collector
  `zfs_scrape_collector_duration_seconds` and `zfs_scrape_collector_success`
  metrics.
- `--deadline DURATION` — how long a scrape may run before cached results
  are returned instead (default `8s`; forms such as `500ms` or `1m30s` are
  accepted). Keep it below your scrape timeout; the running collection still
  finishes and refreshes the cache. While a collection is still in flight,
  further scrapes are answered from the cache.
- `--pool NAME` — collect only this pool; repeat for several pools
  (default: all pools). Named pools that do not exist are skipped with a
  warning.
- `--exclude REGEX` — skip datasets, snapshots and volumes whose name
  matches, for example `'^rpool/docker/'`; may be repeated.
- `--collector.<name>` / `--no-collector.<name>` — turn a collector on or off.
- `--properties.<name> LIST` — comma-separated properties for a collector.
- `--log.level {debug,info,warn,error}` and `--log.format {logfmt,json}` —
  logging, written to standard error.
- `--version` — print the version and exit.

Every response also carries a `zfs_exporter_build_info` gauge with the
exporter and Python versions as labels.

## Collectors

| Collector            | Default  | Default properties |
|----------------------|----------|--------------------|
| `pool`               | enabled  | allocated, dedupratio, fragmentation, free, freeing, health, leaked, readonly, size |
| `dataset-filesystem` | enabled  | available, logicalused, quota, referenced, used, usedbydataset, written |
| `dataset-volume`     | enabled  | available, logicalused, referenced, used, usedbydataset, volsize, written |
| `dataset-snapshot`   | disabled | logicalused, referenced, used, written |

Pool metrics are labelled with `pool`; dataset metrics with `name`, `pool`
and `type`. Percentages such as `capacity` and `fragmentation` are reported
as fractions (50% becomes `0.5`), multipliers such as `dedupratio` and
`compressratio` as their reciprocal (`2.50x` becomes `0.4`), and
`zfs_pool_health` is a code from 0 (`ONLINE`) to 6 (`SUSPENDED`). Properties
without a known mapping are still exported as gauges, with a warning in the
log.

## Using it as a library

`zfsexporter.scrape.ZFSCollector` is built from a `zfsexporter.scrape.ZFSConfig`
and offers `describe()` and `collect()`; `zfsexporter.metrics.render` turns
the collected metrics into the Prometheus text format.
`zfsexporter.zfs_client.Client` wraps the command-line tools; any object
with the same `pool_names()`, `pool(name)` and `datasets(pool, kind)`
methods can be passed as `zfs_client` instead, for testing or for other data
sources. `zfsexporter.zfs_status` parses the JSON version and pool-status
output.

## What it does not do

The HTTP server is plain HTTP: there is no TLS, no authentication and no
web configuration file. No process or runtime metrics about the exporter
itself are exported, only the scrape and build-info metrics described above.

## Development

```
pip install -e '.[test]'
pytest
```