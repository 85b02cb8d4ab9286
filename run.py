#!/usr/bin/env python3
"""
End-to-end run: fetch training data, train, predict the actual data, and chart the result.
"""

import argparse
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional

from chart import PredictionSummary, point_labels, render_chart, summarize
from data import Record, load_records, training_records
from predict import WaitTimePredictor
from tokenizer import Vocabulary
from train import (
    PIPELINE_ERRORS,
    Trainer,
    add_training_arguments,
    create_datasets_and_model,
    seed_everything,
)


@dataclass
class RunResult:
    vocabulary: Vocabulary
    history: List[float]
    actual_records: List[Record]
    predicted: List[float]
    summary: PredictionSummary
    chart_path: Optional[Path]


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Train on chat messages and chart predicted vs. actual wait times")
    parser.add_argument('--training_data', type=str, default='./json/training_data.json',
                        help='Training data: JSON file path or URL')
    parser.add_argument('--actual_data', type=str, default='./json/actual_data.json',
                        help='Actual data to predict: JSON file path or URL')
    parser.add_argument('--chart', type=str, default='wait_times.png', help='Output chart image')
    parser.add_argument('--chart_kind', type=str, default='line', choices=('line', 'bar'))
    parser.add_argument('--checkpoint_dir', type=str, default=None,
                        help='Save checkpoints and vocabulary here (not saved by default)')
    parser.add_argument('--no_round', action='store_true',
                        help='Report raw predictions instead of whole minutes')
    return add_training_arguments(parser)


def run_pipeline(args) -> RunResult:
    """
    Train on the training data and predict the actual data.

    Every input is validated and the model trained before the chart is written,
    so a failed run leaves no partial chart behind.
    """
    seed_everything(args.seed)

    print("Loading training data...")
    records = load_records(args.training_data, label_policy=args.label_policy, default_label=args.default_label)
    records = training_records(records, args.unknown_label)

    vocabulary, train_dataset, val_dataset, model = create_datasets_and_model(args, records)

    if args.checkpoint_dir:
        Path(args.checkpoint_dir).mkdir(parents=True, exist_ok=True)
        vocabulary.save(str(Path(args.checkpoint_dir) / 'vocab.json'))

    trainer = Trainer(
        model=model,
        train_dataset=train_dataset,
        val_dataset=val_dataset,
        learning_rate=args.lr,
        batch_size=args.batch_size,
        num_epochs=args.epochs,
        checkpoint_dir=args.checkpoint_dir,
    )
    history = trainer.train()

    print("Loading actual data and predicting...")
    actual_records = load_records(
        args.actual_data,
        label_policy=args.label_policy,
        default_label=args.default_label,
        require_label=False,
    )
    predictor = WaitTimePredictor.from_model(trainer.model, vocabulary)
    predicted = predictor.predict((r.text for r in actual_records), round_result=not args.no_round)
    actual = [r.label for r in actual_records]

    print("Actual wait times:", actual)
    print("Predicted wait times:", predicted)

    summary = summarize(actual, predicted, args.unknown_label)
    if summary.mean_actual is not None:
        print(f"Actual average: {summary.mean_actual:.2f} ({summary.known_count} known)")
    if summary.mean_predicted is not None:
        print(f"Predicted average: {summary.mean_predicted:.2f}")
    if summary.mae is not None:
        print(f"Mean absolute error: {summary.mae:.2f}")

    chart_path = None
    if args.chart:
        chart_path = render_chart(
            point_labels(actual_records),
            actual,
            predicted,
            args.chart,
            kind=args.chart_kind,
            unknown_label=args.unknown_label,
        )

    return RunResult(
        vocabulary=vocabulary,
        history=history,
        actual_records=actual_records,
        predicted=predicted,
        summary=summary,
        chart_path=chart_path,
    )


def main(argv=None):
    args = build_parser().parse_args(argv)
    try:
        run_pipeline(args)
    except PIPELINE_ERRORS as e:
        print(f"Error while fetching data or training the model: {e}")
        raise SystemExit(1)


if __name__ == "__main__":
    main()
