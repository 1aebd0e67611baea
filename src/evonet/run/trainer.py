"""
Network Training Module

Gradient-based training of a network on a dataset, by backpropagation.

A dataset is a sequence of samples, each a dict {"input": [...], "output": [...]}
whose lists have the sizes of the network's input and output layers.

Every iteration is one pass over the (training part of the) dataset. Deltas
are accumulated sample by sample and applied every 'batch_size' samples.
Without an optimizer (and without gradient clipping, gradient accumulation
or mixed precision) the deltas are applied by the nodes themselves, with
momentum; otherwise the deltas are handed to an update rule from
'evonet.methods.optimizer' once every 'accumulation_steps' batches.

Functions:
    train(net, dataset, ...): Train a network; returns {"error", "iterations", "time"}
    test(net, dataset, cost): Evaluate a network; returns {"error", "time"}
"""

import math
import time
import numpy as np
from typing import TYPE_CHECKING, Any, Callable, Sequence

from evonet.architecture.node import NodeType
from evonet.methods.cost      import get_cost, cost_derivatives
from evonet.methods.optimizer import resolve_optimizer, apply_optimizer
from evonet.methods           import rate as rate_policies

if TYPE_CHECKING:
    from evonet.architecture.network import Network

_SMOOTHING = ("sma", "ema", "adaptive_ema", "median", "wma", "trimmed", "gaussian")
_CLIPPING  = ("norm", "percentile", "layerwise_norm", "layerwise_percentile")
_HALF_MAX  = float(np.finfo(np.float16).max)

def _validate_dataset(net: 'Network', dataset: Sequence[dict]):
    if not dataset:
        raise ValueError("Dataset is empty")
    for sample in dataset:
        if len(sample["input"]) != net.input or len(sample["output"]) != net.output:
            raise ValueError("Dataset is invalid or dimensions do not match network input/output size!")

class _MovingAverage:
    """
    Smoothing of the per-iteration training error, over a window
    of the most recent errors.

    Types:
        sma:          arithmetic mean
        ema:          exponential moving average
        adaptive_ema: the lower of a plain EMA and an EMA whose smoothing
                      factor grows with the relative variance of the window
        median:       median
        wma:          linearly weighted mean (newest weighs most)
        trimmed:      mean after dropping 'trimmed_ratio' of each tail
        gaussian:     Gaussian-weighted mean centered on the newest error
    """

    def __init__(self, kind: str, window: int, ema_alpha: float | None = None, trimmed_ratio: float = 0.1):
        if kind not in _SMOOTHING:
            raise ValueError(f"Unknown moving average type '{kind}'")
        self.kind          : str         = kind
        self.window        : int         = max(1, window)
        self.alpha         : float       = ema_alpha if ema_alpha and 0 < ema_alpha <= 1 else 2 / (self.window + 1)
        self.trimmed_ratio : float       = min(0.49, max(0.0, trimmed_ratio))
        self.recent        : list[float] = []
        self._ema          : float | None = None
        self._adaptive_ema : float | None = None

    def update(self, error: float) -> float:
        self.recent.append(error)
        if len(self.recent) > self.window:
            self.recent.pop(0)

        if self.kind == "ema":
            self._ema = error if self._ema is None else self._ema + self.alpha * (error - self._ema)
            return self._ema
        if self.window == 1:
            return error

        values = np.array(self.recent)
        if self.kind == "sma":
            return float(np.mean(values))
        if self.kind == "median":
            return float(np.median(values))
        if self.kind == "wma":
            weights = np.arange(1, len(values) + 1)
            return float(np.sum(weights * values) / np.sum(weights))
        if self.kind == "trimmed":
            drop    = int(len(values) * self.trimmed_ratio)
            trimmed = np.sort(values)[drop:len(values) - drop]
            return float(np.mean(trimmed))
        if self.kind == "gaussian":
            sigma   = self.window / 3
            offsets = np.arange(len(values)) - (len(values) - 1)
            weights = np.exp(-0.5 * (offsets / sigma) ** 2)
            return float(np.sum(weights * values) / np.sum(weights))

        # adaptive_ema
        mean     = np.mean(values)
        variance = np.var(values) / max(mean * mean, 1e-8)
        adaptive = min(0.95, max(self.alpha, self.alpha * (1 + 2 * variance)))
        if self._ema is None:
            self._ema = self._adaptive_ema = error
        else:
            self._ema          += self.alpha * (error - self._ema)
            self._adaptive_ema += adaptive * (error - self._adaptive_ema)
        return min(self._ema, self._adaptive_ema)

def _accumulators(net: 'Network') -> list[tuple[Any, str]]:
    """(owner, attribute) of the accumulated delta of every trainable parameter."""
    params = [(conn, "total_delta_weight") for conn in net.connections + net.selfconns]
    params += [(node, "total_delta_bias") for node in net.nodes if node.type is not NodeType.INPUT]
    return params

def _gradient_groups(net: 'Network', layerwise: bool) -> list[list[tuple[Any, str]]]:
    """
    Groups of accumulators clipped together: one group for the whole network,
    or (layerwise) one group per non-input node, holding the deltas of its
    incoming connections, its self-connection and its bias.
    """
    if not layerwise:
        return [_accumulators(net)]
    groups = []
    for node in net.nodes:
        if node.type is NodeType.INPUT:
            continue
        group = [(conn, "total_delta_weight") for conn in node.incoming]
        if node.self_connection is not None:
            group.append((node.self_connection, "total_delta_weight"))
        group.append((node, "total_delta_bias"))
        groups.append(group)
    return groups

def _clip_gradients(net: 'Network', clip: dict[str, Any]):
    mode = clip["mode"]
    for group in _gradient_groups(net, mode.startswith("layerwise")):
        g = np.array([getattr(owner, attr) for owner, attr in group], dtype=float)
        if mode.endswith("norm"):
            max_norm = clip.get("max_norm", 1.0)
            norm     = np.linalg.norm(g)
            if norm <= max_norm or norm == 0:
                continue
            g = g * (max_norm / norm)
        else:
            threshold = np.percentile(np.abs(g), clip.get("percentile", 99))
            if threshold <= 0:
                continue
            g = np.clip(g, -threshold, threshold)
        for (owner, attr), value in zip(group, g):
            setattr(owner, attr, float(value))

def _scale_accumulators(net: 'Network', factor: float):
    for owner, attr in _accumulators(net):
        setattr(owner, attr, getattr(owner, attr) * factor)

def _zero_accumulators(net: 'Network'):
    for owner, attr in _accumulators(net):
        setattr(owner, attr, 0.0)

def _normalize_clip(gradient_clip) -> dict[str, Any] | None:
    if gradient_clip is None:
        return None
    clip = dict(gradient_clip)
    if "mode" not in clip:
        clip["mode"] = "percentile" if "percentile" in clip and "max_norm" not in clip else "norm"
    if clip["mode"] not in _CLIPPING:
        raise ValueError(f"Unknown gradient clipping mode '{clip['mode']}'")
    return clip

def _penalties(net: 'Network', regularization) -> tuple[float, float]:
    """(L1 penalty, L2 penalty) of the current weights under a regularization specification."""
    if callable(regularization) or not regularization:
        return 0.0, 0.0
    if isinstance(regularization, dict):
        kind    = str(regularization.get("type", "L2")).upper()
        lambda_ = float(regularization.get("lambda", 0.0))
    else:
        kind, lambda_ = "L2", float(regularization)
    weights = np.array([conn.weight for conn in net.connections + net.selfconns], dtype=float)
    if kind == "L1":
        return lambda_ * float(np.sum(np.abs(weights))), 0.0
    return 0.0, 0.5 * lambda_ * float(np.sum(weights ** 2))

class _Trainer:
    """
    One training run: the settings of the run, and the state
    (loss scale, optimizer step bookkeeping) that persists across passes.
    """

    def __init__(self, net: 'Network', settings: dict[str, Any]):
        self.net       : 'Network'        = net
        self.settings  : dict[str, Any]   = settings
        self.optimized : bool             = (settings["optimizer"] is not None
                                             or settings["gradient_clip"] is not None
                                             or settings["accumulation_steps"] > 1
                                             or settings["mixed_precision"] is not None)
        self.loss_scale: float            = 1.0
        self.good_steps: int              = 0
        self.overflows : int              = 0
        self.grad_norm : float            = 0.0

        mp = settings["mixed_precision"]
        if mp is not None:
            self.loss_scale = float(mp["loss_scale"])

    def run_pass(self, dataset: Sequence[dict], rate: float) -> float:
        """One pass over the dataset; returns the mean training error."""
        net           = self.net
        s             = self.settings
        batch_size    = s["batch_size"]
        total         = 0.0
        micro_batches = 0

        for i, sample in enumerate(dataset):
            last   = i == len(dataset) - 1
            output = net.activate(sample["input"], training=True)
            total += s["cost"](sample["output"], output)

            batch_end = (i + 1) % batch_size == 0 or last
            if not self.optimized:
                net.propagate(rate, s["momentum"], batch_end, sample["output"],
                              s["regularization"], s["cost_derivative"])
                continue

            net.propagate(self.loss_scale, 0.0, False, sample["output"],
                          s["regularization"], s["cost_derivative"])
            if batch_end:
                micro_batches += 1
                if micro_batches % s["accumulation_steps"] == 0 or last:
                    self._optimizer_step(rate, micro_batches)
                    micro_batches = 0

        return total / len(dataset)

    def _optimizer_step(self, rate: float, micro_batches: int):
        net = self.net
        s   = self.settings

        if s["mixed_precision"] is not None:
            scaled = np.array([getattr(owner, attr) for owner, attr in _accumulators(net)], dtype=float)
            if not np.all(np.isfinite(scaled)) or np.any(np.abs(scaled) > _HALF_MAX):
                # overflow of the half precision gradients: skip this step and lower the loss scale
                _zero_accumulators(net)
                self.loss_scale = max(s["mixed_precision"]["min_scale"], self.loss_scale / 2)
                self.good_steps = 0
                self.overflows += 1
                self.grad_norm  = 0.0
                return

        _scale_accumulators(net, 1.0 / self.loss_scale)
        if s["gradient_clip"] is not None:
            _clip_gradients(net, s["gradient_clip"])
        if micro_batches > 1 and s["accumulation_reduction"] == "average":
            _scale_accumulators(net, 1.0 / micro_batches)

        self.grad_norm = float(np.linalg.norm([getattr(owner, attr) for owner, attr in _accumulators(net)]))
        optimizer = s["optimizer"] or resolve_optimizer({"type": "sgd", "momentum": s["momentum"]})
        apply_optimizer(net, optimizer, rate)
        net._training_step += 1

        mp = s["mixed_precision"]
        if mp is not None:
            self.good_steps += 1
            if self.good_steps >= mp["increase_every"] and self.loss_scale < mp["max_scale"]:
                self.loss_scale = min(mp["max_scale"], self.loss_scale * 2)
                self.good_steps = 0

def train(net                   : 'Network',
          dataset               : Sequence[dict],
          iterations            : int | None = None,
          error                 : float | None = None,
          rate                  : float | None = None,
          momentum              : float | None = None,
          batch_size            : int | None = None,
          optimizer             : Any = None,
          dropout               : float = 0.0,
          regularization        : Any = 0,
          cost                  : Any = "mse",
          use_cost_derivative   : bool = False,
          rate_policy           : Callable[[float, int], float] | None = None,
          shuffle               : bool = False,
          clear                 : bool = False,
          log                   : int | None = None,
          schedule              : dict[str, Any] | None = None,
          cross_validate        : dict[str, float] | None = None,
          gradient_clip         : dict[str, Any] | None = None,
          accumulation_steps    : int = 1,
          accumulation_reduction: str = "average",
          mixed_precision       : bool | dict[str, Any] = False,
          moving_average_window : int = 1,
          moving_average_type   : str = "sma",
          ema_alpha             : float | None = None,
          trimmed_ratio         : float = 0.1,
          early_stop_patience   : int | None = None,
          early_stop_min_delta  : float = 0.0,
          checkpoint            : dict[str, Any] | None = None,
          metrics_hook          : Callable[[dict], None] | None = None,
          stop_condition        : Callable[[dict], bool] | None = None) -> dict[str, float]:
    """
    Train a network on a dataset by backpropagation.

    Training stops after 'iterations' passes, as soon as the (smoothed)
    error drops to 'error' or below, when early stopping triggers, or when
    'stop_condition' returns True. At least one of 'iterations' and 'error'
    must be given.

    Parameters:
        net:                    the network to train
        dataset:                list of {"input": [...], "output": [...]}
        iterations:             maximum number of passes over the dataset
        error:                  target error
        rate:                   learning rate (default: config.learning_rate)
        momentum:               momentum (default: config.momentum)
        batch_size:             samples per update (default: config.batch_size)
        optimizer:              update rule name, or dict (see 'evonet.methods.optimizer')
        dropout:                dropout probability of hidden nodes, in [0, 1)
        regularization:         L2 coefficient, {"type": "L1"|"L2", "lambda": x}, or callable
        cost:                   cost function, or its name (see 'evonet.methods.cost')
        use_cost_derivative:    backpropagate the derivative of 'cost' instead of 'target - output'
        rate_policy:            policy(base_rate, iteration) -> rate (see 'evonet.methods.rate')
        shuffle:                shuffle the training samples before every pass
        clear:                  clear the network state before every pass
        log:                    print progress every 'log' iterations (default: config.log_interval)
        schedule:               {"iterations": n, "function": f}, calls f({"error", "iteration"}) every n iterations
        cross_validate:         {"test_size": fraction held out, "test_error": target validation error}
        gradient_clip:          {"mode": "norm"|"percentile"|"layerwise_norm"|"layerwise_percentile",
                                 "max_norm": x, "percentile": p}
        accumulation_steps:     batches whose deltas are accumulated before one optimizer step
        accumulation_reduction: "average" or "sum" of the accumulated deltas
        mixed_precision:        True, or {"loss_scale", "min_scale", "max_scale", "increase_every"}
        moving_average_window:  number of recent errors the monitored error is smoothed over
        moving_average_type:    "sma", "ema", "adaptive_ema", "median", "wma", "trimmed", "gaussian"
        ema_alpha:              smoothing factor of the EMA types (default: 2 / (window + 1))
        trimmed_ratio:          fraction of each tail dropped by the "trimmed" type
        early_stop_patience:    stop after this many iterations without improvement
        early_stop_min_delta:   minimum decrease of the error that counts as an improvement
        checkpoint:             {"last": bool, "best": bool, "save": f}, calls f({"type", "iteration", "error", "network"})
        metrics_hook:           called every iteration with {"iteration", "error", "grad_norm"}
        stop_condition:         called every iteration with {"iteration", "error"}; training stops on True

    Returns:
        {"error": final monitored error, "iterations": passes performed, "time": seconds elapsed}
    """
    config = net.config
    _validate_dataset(net, dataset)
    if iterations is None and error is None:
        raise ValueError("Missing 'iterations' or 'error' option: training requires a stopping condition")
    if iterations is not None and iterations < 0:
        raise ValueError("Number of iterations must be non-negative")
    if not 0 <= dropout < 1:
        raise ValueError("Dropout must be in [0,1)")
    if accumulation_steps < 1:
        raise ValueError("Accumulation steps must be at least 1")
    if accumulation_reduction not in ("average", "sum"):
        raise ValueError(f"Unknown accumulation reduction '{accumulation_reduction}'")

    base_rate  = config.learning_rate if rate       is None else rate
    momentum   = config.momentum      if momentum   is None else momentum
    batch_size = config.batch_size    if batch_size is None else batch_size
    log        = config.log_interval  if log        is None else log
    rate_policy = rate_policy or rate_policies.fixed()

    # Hold out the end of the dataset for validation
    train_set, validation_set = list(dataset), None
    if cross_validate is not None:
        test_size = cross_validate.get("test_size", 0.2)
        if not 0 < test_size < 1:
            raise ValueError("Cross-validation test size must be in (0,1)")
        split = math.ceil(len(train_set) * (1 - test_size))
        train_set, validation_set = train_set[:split], train_set[split:]
        if not validation_set:
            raise ValueError("Cross-validation leaves no samples to validate on")
        error = cross_validate.get("test_error", error)

    if batch_size < 1 or batch_size > len(train_set):
        raise ValueError("Batch size cannot be larger than the dataset length")

    cost_name, cost_fn = get_cost(cost)
    cost_derivative    = cost_derivatives.get(cost_name) if use_cost_derivative else None
    if use_cost_derivative and cost_derivative is None:
        raise ValueError(f"Cost function '{cost_name}' has no derivative")

    if mixed_precision:
        mp = {} if mixed_precision is True else dict(mixed_precision)
        mixed_precision = {
            "loss_scale"    : mp.get("loss_scale",     config.loss_scale),
            "min_scale"     : mp.get("min_scale",      config.loss_scale_min),
            "max_scale"     : mp.get("max_scale",      config.loss_scale_max),
            "increase_every": mp.get("increase_every", config.loss_scale_increase_every),
        }
    else:
        mixed_precision = None

    trainer = _Trainer(net, {
        "batch_size"            : batch_size,
        "momentum"              : momentum,
        "regularization"        : regularization,
        "cost"                  : cost_fn,
        "cost_derivative"       : cost_derivative,
        "optimizer"             : resolve_optimizer(optimizer) if optimizer is not None else None,
        "gradient_clip"         : _normalize_clip(gradient_clip),
        "accumulation_steps"    : accumulation_steps,
        "accumulation_reduction": accumulation_reduction,
        "mixed_precision"       : mixed_precision,
    })
    smoother = _MovingAverage(moving_average_type, moving_average_window, ema_alpha, trimmed_ratio)

    target_error = -math.inf if error is None else error
    best_error   = math.inf
    best_saved   = math.inf
    no_improve   = 0
    pruned       = 0
    final_error  = math.inf
    performed    = 0
    start        = time.time()

    net.dropout = dropout
    try:
        iteration = 0
        while iterations is None or iteration < iterations:
            iteration += 1
            pruned += net.maybe_prune(net._global_epoch + iteration)

            if shuffle:
                net.rng.shuffle(train_set)
            if clear:
                net.clear()

            current_rate = rate_policy(base_rate, iteration)
            train_error  = trainer.run_pass(train_set, current_rate)
            performed    = iteration

            if validation_set is not None:
                if clear:
                    net.clear()
                train_error = test(net, validation_set, cost_fn)["error"]
            final_error = smoother.update(train_error)

            if log and iteration % log == 0:
                print(f"iteration {iteration}, error {final_error:.6f}, rate {current_rate:.6f}")

            if metrics_hook is not None:
                metrics_hook({"iteration": iteration, "error": final_error, "grad_norm": trainer.grad_norm})

            if checkpoint is not None:
                if checkpoint.get("last"):
                    checkpoint["save"]({"type": "last", "iteration": iteration,
                                        "error": final_error, "network": net.to_json()})
                if checkpoint.get("best") and final_error < best_saved:
                    best_saved = final_error
                    checkpoint["save"]({"type": "best", "iteration": iteration,
                                        "error": final_error, "network": net.to_json()})

            if schedule is not None and schedule.get("iterations") and iteration % schedule["iterations"] == 0:
                schedule["function"]({"error": final_error, "iteration": iteration})

            if final_error < best_error - early_stop_min_delta:
                best_error = final_error
                no_improve = 0
            elif early_stop_patience:
                no_improve += 1

            if early_stop_patience and no_improve >= early_stop_patience:
                break
            if final_error <= target_error:
                break
            if stop_condition is not None and stop_condition({"iteration": iteration, "error": final_error}):
                break
    finally:
        net.dropout = 0.0
        net._prepare_pass(False)
        net._global_epoch += performed

    l1, l2 = _penalties(net, regularization)
    net._last_stats = {
        "dropout"           : dropout,
        "weight_noise_std"  : net._weight_noise_std,
        "dropconnect_p"     : net._dropconnect_p,
        "l1_penalty"        : l1,
        "l2_penalty"        : l2,
        "pruned_connections": pruned,
        "loss_scale"        : trainer.loss_scale,
        "overflows"         : trainer.overflows,
        "grad_norm"         : trainer.grad_norm,
    }

    return {"error": final_error, "iterations": performed, "time": time.time() - start}

def test(net: 'Network', dataset: Sequence[dict], cost="mse") -> dict[str, float]:
    """
    Evaluate a network on a dataset, without training it.

    Parameters:
        net:     the network
        dataset: list of {"input": [...], "output": [...]}
        cost:    cost function, or its name

    Returns:
        {"error": mean error per sample, "time": seconds elapsed}
    """
    _validate_dataset(net, dataset)
    _, cost_fn = get_cost(cost)
    start = time.time()

    total = 0.0
    for sample in dataset:
        output = net.no_trace_activate(sample["input"])
        total += cost_fn(sample["output"], output)

    return {"error": total / len(dataset), "time": time.time() - start}
