from __future__ import annotations

import argparse
import json
import logging
from pathlib import Path
from typing import Dict, List, Sequence, Tuple

import numpy as np
import torch

from pauliprop import (
    CliffordGate,
    PauliRotation,
    PauliSum,
    TruncationPolicy,
    overlap_with_zero,
    propagate_inplace,
    wrap_coefficients,
)


Edge = Tuple[int, int]


def canonical_edge(u: int, v: int) -> Edge:
    if int(u) == int(v):
        raise ValueError("Self-loop edges are not allowed for MaxCut.")
    a, b = int(u), int(v)
    return (a, b) if a < b else (b, a)


def make_ring_chord_graph(n_qubits: int, chord_shift: int = 3) -> List[Edge]:
    if int(n_qubits) < 2:
        raise ValueError("n_qubits must be >= 2")
    n = int(n_qubits)
    shift = int(chord_shift) % n
    if shift == 0:
        raise ValueError("chord_shift must not be 0 modulo n_qubits")

    edge_set = set()
    for i in range(n):
        edge_set.add(canonical_edge(i, (i + 1) % n))
        edge_set.add(canonical_edge(i, (i + shift) % n))
    return sorted(edge_set)


def build_maxcut_observable(n_qubits: int, edges: Sequence[Edge]) -> PauliSum:
    obs = PauliSum(int(n_qubits))
    for u, v in edges:
        obs.add_pauli(("Z", "Z"), (int(u), int(v)), 1.0)
    return obs


def build_qaoa_circuit(n_qubits: int, edges: Sequence[Edge], p_layers: int):
    circuit = []
    n = int(n_qubits)

    for q in range(n):
        circuit.append(CliffordGate("H", [q]))

    param_idx = 0
    for _ in range(int(p_layers)):
        for (u, v) in edges:
            circuit.append(PauliRotation("ZZ", [int(u), int(v)], param_idx=param_idx))
            param_idx += 1
        for q in range(n):
            circuit.append(PauliRotation("X", [q], param_idx=param_idx))
            param_idx += 1
    return circuit, param_idx


def build_theta_init_tqa(p_layers: int, n_edges: int, n_qubits: int, delta_t: float) -> np.ndarray:
    """Trotterized quantum annealing start: gamma ramps up, beta ramps down."""
    i = np.arange(1, int(p_layers) + 1, dtype=np.float64)
    gammas = (i / p_layers) * delta_t
    betas = (1.0 - i / p_layers) * delta_t
    thetas: List[float] = []
    for l in range(int(p_layers)):
        thetas.extend([float(gammas[l])] * int(n_edges))
        thetas.extend([float(betas[l])] * int(n_qubits))
    return np.asarray(thetas, dtype=np.float64)


def expected_cut_from_sum_zz(sum_zz: float, m_edges: int) -> float:
    return 0.5 * (float(m_edges) - float(sum_zz))


def parse_args() -> argparse.Namespace:
    p = argparse.ArgumentParser(description="Train MaxCut-QAOA angles through truncated Pauli propagation.")
    p.add_argument("--n-qubits", type=int, default=8)
    p.add_argument("--p-layers", type=int, default=2)
    p.add_argument("--chord-shift", type=int, default=3)
    p.add_argument("--delta-t", type=float, default=0.8, help="TQA initialization delta_t.")
    p.add_argument("--steps", type=int, default=60)
    p.add_argument("--lr", type=float, default=0.05)
    p.add_argument("--seed", type=int, default=0)

    p.add_argument("--max-weight", type=int, default=4)
    p.add_argument("--max-freq", type=int, default=None)
    p.add_argument("--min-abs", type=float, default=1e-4)
    p.add_argument("--log-every", type=int, default=10)
    p.add_argument("--verbose", action="store_true", help="Log per-gate term counts.")
    p.add_argument("--output-json", type=str, default="", help="Optional JSON report path.")
    return p.parse_args()


def main() -> None:
    args = parse_args()
    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.INFO)
    torch.manual_seed(int(args.seed))

    n = int(args.n_qubits)
    edges = make_ring_chord_graph(n, args.chord_shift)
    m_edges = len(edges)
    circuit, n_params = build_qaoa_circuit(n, edges, args.p_layers)
    policy = TruncationPolicy(
        max_weight=args.max_weight,
        max_freq=args.max_freq,
        min_abs_coeff=args.min_abs,
    )
    print(f"n_qubits={n} edges={m_edges} p_layers={args.p_layers} n_params={n_params}")
    print(f"policy={policy}")

    init = build_theta_init_tqa(args.p_layers, m_edges, n, args.delta_t)
    thetas = torch.nn.Parameter(torch.tensor(init, dtype=torch.float64))
    opt = torch.optim.Adam([thetas], lr=float(args.lr))

    history: List[Dict[str, float]] = []
    best_val = float("inf")
    for step in range(int(args.steps)):
        opt.zero_grad(set_to_none=True)

        # The in-place entry consumes the observable, so build a fresh one per step.
        psum = build_maxcut_observable(n, edges)
        if policy.requires_tracking:
            psum = wrap_coefficients(psum)
        propagate_inplace(circuit, psum, thetas, policy)
        zz_val = overlap_with_zero(psum, thetas=thetas)
        zz_val.backward()
        opt.step()

        val = float(zz_val.detach().cpu().item())
        best_val = min(best_val, val)
        history.append({"step": step, "sum_zz": val, "n_terms": len(psum)})
        if (step % int(args.log_every) == 0) or (step == int(args.steps) - 1):
            exp_cut = expected_cut_from_sum_zz(val, m_edges)
            print(f"step={step:04d} sum<ZZ>={val:+.8f} E[cut]={exp_cut:.6f} terms={len(psum)}")

    print(f"best sum<ZZ>={best_val:+.8f} best E[cut]={expected_cut_from_sum_zz(best_val, m_edges):.6f}")

    if args.output_json:
        out = Path(args.output_json)
        out.parent.mkdir(parents=True, exist_ok=True)
        payload = {
            "config": vars(args),
            "edges": [list(e) for e in edges],
            "history": history,
            "best_sum_zz": best_val,
            "final_thetas": thetas.detach().cpu().tolist(),
        }
        out.write_text(json.dumps(payload, indent=2), encoding="utf-8")
        print(f"Saved report: {out}")


if __name__ == "__main__":
    main()
