# palletsim

palletsim is an in-memory model of a small blockchain runtime, written in pure Python. It models a handful of runtime modules ("pallets") and an ERC-20 token contract. For each one it keeps the state and the events, and it makes the same checks and raises the same errors. You can drive everything directly from Python code or from tests. The package uses only the standard library.

## Installation

```
pip install .
```

To run the test suite:

```
pip install ".[test]"
pytest
```

## Modules

### `palletsim.frame`

The machinery that the pallets share.

- `Origin.signed(who)` and `Origin.none()` build call origins.
- `ensure_signed(origin)` returns the signer. `ensure_none(origin)` checks that there is no signer. Both raise `BadOrigin` when the origin is the wrong kind. `BadOrigin` is a `DispatchError`.
- `System` holds the block number, the current `extrinsic_index` and the deposited events.
  - `deposit_event` adds an event.
  - `events` lists the events so far.
  - `set_block_number` moves to another block.
  - `reset_events` clears the events.
  - `transactional(state)` is a context manager. If the block inside it raises, it restores both the given storage mapping and the event list.
- `new_test_ext()` returns a fresh `System` at block 0.

### `palletsim.template`

`TemplatePallet` stores a single optional unsigned 32-bit value.

- `do_something(origin, value)` needs a signed origin. It stores the value and deposits `SomethingStored(something, who)`.
- `cause_error(origin)` adds one to the stored value. It raises `NoneValue` when nothing is stored, and `StorageOverflow` when the value is already at its maximum.
- `something()` reads the stored value.
- `benchmark_do_something(pallet, s, caller)` runs `do_something` for a component `s` in `0..=100` and checks the stored result.

### `palletsim.kitties`

`KittiesPallet` keeps kitties, which are 16-byte DNA values, along with their owners and a running count.

- `create(origin)` mints a kitty with random DNA. The DNA is a BLAKE2b hash of the random seed, the sender and the extrinsic index.
- `transfer(origin, new_owner, kitty_id)` changes the owner. It raises `NotOwner` if the caller is not the owner.
- `breed(origin, id1, id2)` mixes two parents' DNA bit by bit under a random selector. It raises `SameParentIndex` or `InvalidKittyIndex`.
- `create` and `breed` raise `KittiesCountOverflow` once the `u32` index space is used up.
- The pallet deposits `KittyCreate` and `KittyTransfer` events.
- Read state with `kitties_count()`, `kitties(id)` and `owner(id)`.
- Pass `random_seed`, a callable that returns bytes, to make DNA deterministic. By default the pallet uses `os.urandom`.

### `palletsim.erc20`

An `Erc20` token whose whole supply is minted to the deployer. It runs against a `ContractEnv`.

- `ContractEnv` holds a stack of callers (`caller`, `push_execution_context`, `pop_execution_context`) and the emitted events (`recorded_events`).
- `default_accounts()` gives the test accounts `alice`, `bob`, `charlie`, `django`, `eve` and `frank`. Each account is 32 bytes of one repeated value.
- The token offers `total_supply`, `balance_of`, `allowance`, `transfer`, `approve`, `transfer_from` and `inner_transfer`.
- Failures raise `InsufficientBalance` or `InsufficientApproval`, both subclasses of `Erc20Error`. A failing message raises before it changes any balance or allowance.
- The token emits `Transfer` and `Approval` events.

### `palletsim.ocw`

`OcwPallet` keeps two lists, `numbers()` and `prices()`. Each holds at most 10 entries; once a list is full, the oldest entry is dropped. Its calls are:

- `submit_number_signed`
- `submit_number_unsigned`
- `submit_price_unsigned`
- `submit_number_unsigned_with_signed_payload`

`validate_unsigned(source, call)` returns a `ValidTransaction` for `submit_number_unsigned` and for signed-payload calls whose signature verifies. It raises `InvalidTransaction` with reason `"BadProof"` when the signature does not verify, and with reason `"Call"` for any other call.

`offchain_worker(block_number)` picks its task from `block_number % 5`:

| Block number % 5 | Task |
|---|---|
| 0 | Send a signed transaction. |
| 1 | Send an unsigned transaction. |
| 2 | Send an unsigned transaction with a signed payload. |
| 3 | Fetch organisation information and cache it in `OffchainStorage`. The fetch is guarded by a `StorageLock`. |
| 4 | Fetch a price and submit it unsigned. |

Errors from these tasks are logged and are not raised.

The worker's collaborators are constructor arguments:

- `fetch(url, headers, timeout_ms) -> (status, body)`. By default it makes an HTTP GET with `urllib`.
- `signer`: an object with `public` and `sign(data)`.
- `submit_signed` and `submit_unsigned`. By default they validate the call and dispatch it to the pallet itself.
- `verify`, `storage` and `clock`.

Parsing helpers are also available: `parse_price`, `parse_github_info` and `parse_price_info`.

### `palletsim.constants`

- `RuntimeVersion`, and the runtime's own `VERSION`.
- `NativeVersion` and `native_version()`.
- `minimum_period(slot_duration)`.
- The chain constants, such as `SLOT_DURATION`, `MINUTES`, `HOURS`, `DAYS`, `BLOCK_HASH_COUNT` and `EXISTENTIAL_DEPOSIT`.

### `palletsim.runtime`

`Runtime` joins a `System`, a `TemplatePallet`, a `KittiesPallet` and an `OcwPallet`.

- `dispatch(origin, pallet, call, *args)` routes a call to `"TemplateModule"`, `"KittiesModule"` or `"OcwDemo"`. For a signed origin it bumps the account nonce, even when the call fails.
- `account_nonce(account)` reads the nonce.
- `apply_unsigned(call)` validates an offchain-worker call and then dispatches it.
- `run_to_block(n)` advances block by block. At each block it clears the events and runs the offchain worker.

## Examples

```python
from palletsim.frame import Origin, new_test_ext
from palletsim.template import NoneValue, TemplatePallet

system = new_test_ext()
pallet = TemplatePallet(system)

try:
    pallet.cause_error(Origin.signed(1))
except NoneValue:
    print("nothing stored yet")

pallet.do_something(Origin.signed(1), 42)
assert pallet.something() == 42
```

```python
from palletsim.erc20 import ContractEnv, Erc20, InsufficientApproval, default_accounts

accounts = default_accounts()
env = ContractEnv(accounts.alice)
token = Erc20(100_000, env)

token.approve(accounts.bob, 100)
env.push_execution_context(accounts.bob)
try:
    token.transfer_from(accounts.alice, accounts.eve, 500)
except InsufficientApproval:
    print("bob may only move 100")
```

```python
from palletsim.frame import new_test_ext
from palletsim.ocw import OcwPallet

pallet = OcwPallet(new_test_ext())
pallet.offchain_worker(1)  # block 1: submit the block number unsigned
assert pallet.numbers() == [1]
```

## What it does not do

palletsim is a simulation of runtime logic only. It does not do any of the following:

- run a node
- produce or import blocks through consensus
- talk to peers
- serve RPC
- offer a command-line program
- build chain specifications
- write state to disk

All storage lives in memory for as long as the objects do. The only network access is the default `fetch` of `OcwPallet`, and you can replace it with any callable.